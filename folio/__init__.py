import logging
import colorlog
from flask import Flask, jsonify
from config import config
from folio.extensions import db, migrate
from folio.exceptions import FolioException

# 导入 commands 模块，用于注册 CLI 命令
from folio import commands


def create_app(config_name='default', **overrides):
    """FOLIO 应用工厂函数，overrides 用于测试或嵌入时覆盖配置项"""
    app = Flask(__name__)

    # 1. 加载配置
    app.config.from_object(config[config_name])
    app.config.update(overrides)
    config[config_name].init_app(app)

    # 2. 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)

    # 3. 配置日志
    configure_logging(app)

    # 4. 注册蓝图 (Blueprints)
    register_blueprints(app)

    # 5. 注册全局错误处理
    register_error_handlers(app)

    # 6. 注册 CLI 命令
    register_commands(app)

    # 7. 定时发布调度器
    init_scheduler(app)

    return app


def register_blueprints(app):
    """注册业务模块蓝图"""
    # 站点生成 / 发布 / 同步
    from folio.blueprints.ssg import ssg_bp
    app.register_blueprint(ssg_bp, url_prefix='/ssg')


def register_error_handlers(app):
    @app.errorhandler(FolioException)
    def handle_folio_exception(e):
        return jsonify(e.to_dict()), e.code

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({'success': False, 'code': 404, 'message': 'Not found'}), 404

    @app.errorhandler(500)
    def internal_server_error(e):
        return jsonify({'success': False, 'code': 500, 'message': 'Internal server error'}), 500


def register_commands(app):
    """注册 Flask CLI 命令"""
    app.cli.add_command(commands.init_site)
    app.cli.add_command(commands.status)
    app.cli.add_command(commands.generate)
    app.cli.add_command(commands.publish)
    app.cli.add_command(commands.backup)
    app.cli.add_command(commands.plan)
    app.cli.add_command(commands.export)
    app.cli.add_command(commands.restore)
    app.cli.add_command(commands.import_scan)
    app.cli.add_command(commands.import_file)
    app.cli.add_command(commands.scheduler_tick)
    app.cli.add_command(commands.set_setting)


def init_scheduler(app):
    from folio.services.scheduler_service import scheduler
    scheduler.init_app(app)
    if app.config.get('SCHEDULER_ENABLED'):
        scheduler.start()


def configure_logging(app):
    """配置彩色控制台日志"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)
    if app.testing:
        return

    handler = logging.StreamHandler()
    handler.setLevel(level)

    formatter = colorlog.ColoredFormatter(
        "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
        datefmt="%H:%M:%S",
        reset=True,
        log_colors={
            'DEBUG':    'cyan',
            'INFO':     'green',
            'WARNING':  'yellow',
            'ERROR':    'red',
            'CRITICAL': 'red,bg_white',
        },
        secondary_log_colors={},
        style='%'
    )
    handler.setFormatter(formatter)
    app.logger.addHandler(handler)
