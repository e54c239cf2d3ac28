import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # 数据库配置
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True

    # 工作区：每个站点的 html 输出、markdown 备份、图片、git 工作副本
    WORKSPACE_PATH = os.environ.get('FOLIO_WORKSPACE') or os.path.join(basedir, '_workspace')
    PROFILES_PATH = os.environ.get('FOLIO_PROFILES') or os.path.join(basedir, '_workspace', 'profiles')
    # 外部 Markdown 导入目录（按站点 slug 再分子目录）
    IMPORT_BASE_PATH = os.environ.get('FOLIO_IMPORT_PATH') or os.path.join(
        os.path.expanduser('~'), 'Documents', 'Folio')

    # git 子进程超时（秒）
    GIT_TIMEOUT = int(os.environ.get('GIT_TIMEOUT', 300))

    # 定时发布
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'false').lower() in ('1', 'true', 'yes')
    SCHEDULER_INTERVAL = int(os.environ.get('SCHEDULER_INTERVAL', 15))  # 分钟
    SCHEDULER_WORKERS = int(os.environ.get('SCHEDULER_WORKERS', 4))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    @staticmethod
    def init_app(app):
        # 确保工作区目录存在
        for key in ('WORKSPACE_PATH', 'PROFILES_PATH'):
            path = app.config[key]
            if not os.path.exists(path):
                os.makedirs(path)


class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'folio.db')


class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False

    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'folio_prod.db')
    # PostgreSQL URL 修正（部分平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SCHEDULER_ENABLED = False
    SCHEDULER_WORKERS = 1
    GIT_TIMEOUT = 60
    LOG_LEVEL = 'WARNING'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
