import os
from folio import create_app, db
from folio.models import (
    Site, Section, Layout, Setting,
    Content, Tag, Image, ContentImage,
    Contributor, Profile, ImportRecord
)

# 从环境变量获取配置模式
config_name = os.getenv('FLASK_ENV') or os.getenv('FLASK_CONFIG') or 'default'
if config_name in ('development', 'dev'):
    config_name = 'development'

app = create_app(config_name)


@app.shell_context_processor
def make_shell_context():
    """
    配置 Flask Shell 上下文。
    允许在命令行中使用 'flask shell' 时自动导入 db 和模型。
    """
    return dict(
        db=db,
        app=app,
        Site=Site,
        Section=Section,
        Layout=Layout,
        Setting=Setting,
        Content=Content,
        Tag=Tag,
        Image=Image,
        ContentImage=ContentImage,
        Contributor=Contributor,
        Profile=Profile,
        ImportRecord=ImportRecord,
    )


if __name__ == '__main__':
    print("-------------------------------------------------------")
    print("   FOLIO SITE ENGINE                                   ")
    print("   Target: Localhost:5000                              ")
    print("-------------------------------------------------------")
    app.run(host='0.0.0.0', port=5000)
