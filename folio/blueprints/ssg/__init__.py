from flask import Blueprint

# 注意：url_prefix 在 folio/__init__.py 注册时设置，这里不重复设置
ssg_bp = Blueprint('ssg', __name__)

from . import routes
