from flask import request, jsonify, current_app
from folio.blueprints.ssg import ssg_bp
from folio.exceptions import ConfigError
from folio.models import Site
from folio.services.site_service import SiteService
from folio.services.generation_service import GenerationService
from folio.services.publish_service import PublishService
from folio.services.export_service import ExportService
from folio.services.restore_service import RestoreService
from folio.services.import_service import ImportService
from folio.utils.git import ExecutionContext


def _context():
    """git 操作的超时上下文"""
    return ExecutionContext(timeout=current_app.config.get('GIT_TIMEOUT', 300))


@ssg_bp.route('/sites')
def sites():
    """站点列表"""
    items = Site.query.order_by(Site.slug).all()
    return jsonify({'success': True, 'sites': [s.to_dict() for s in items]})


@ssg_bp.route('/sites/<slug>/generate', methods=['POST'])
def generate(slug):
    """全量生成站点"""
    site = SiteService.get_by_slug(slug)
    report = GenerationService.generate(site)
    return jsonify({'success': True, 'report': report.to_dict()})


@ssg_bp.route('/sites/<slug>/publish', methods=['POST'])
def publish(slug):
    site = SiteService.get_by_slug(slug)
    result = PublishService.publish(site, context=_context())
    return jsonify({'success': True, 'result': result.to_dict()})


@ssg_bp.route('/sites/<slug>/backup', methods=['POST'])
def backup(slug):
    site = SiteService.get_by_slug(slug)
    result = PublishService.backup(site, context=_context())
    return jsonify({'success': True, 'result': result.to_dict()})


@ssg_bp.route('/sites/<slug>/plan', methods=['POST'])
def plan(slug):
    """预演发布 / 备份，只列出变更"""
    site = SiteService.get_by_slug(slug)
    data = request.get_json(silent=True) or {}
    purpose = data.get('purpose', 'publish')
    if purpose not in ('publish', 'backup'):
        raise ConfigError(f'未知的 purpose: {purpose}')
    result = PublishService.plan(site, purpose=purpose, context=_context())
    return jsonify({'success': True, 'plan': result.to_dict()})


@ssg_bp.route('/sites/<slug>/export', methods=['POST'])
def export(slug):
    """导出 Markdown 到工作区（不推送）"""
    site = SiteService.get_by_slug(slug)
    report = ExportService.export_site(site)
    return jsonify({'success': True, 'report': report.to_dict()})


@ssg_bp.route('/sites/<slug>/restore', methods=['POST'])
def restore(slug):
    site = SiteService.get_by_slug(slug)
    data = request.get_json(silent=True) or {}
    path = data.get('path')
    if not path:
        raise ConfigError('缺少恢复目录 path')
    report = RestoreService.restore_site(site, path)
    return jsonify({'success': True, 'report': report.to_dict()})


@ssg_bp.route('/sites/<slug>/imports')
def import_scan(slug):
    """扫描导入目录"""
    site = SiteService.get_by_slug(slug)
    entries = ImportService.scan(site, request.args.get('dir'))
    return jsonify({'success': True, 'files': [e.to_dict() for e in entries]})


@ssg_bp.route('/sites/<slug>/imports', methods=['POST'])
def import_files(slug):
    """
    导入文件
    body: {"path": "...", "force": false} 导入单个文件；
          {"dir": "..."} 或空 body 批量导入
    """
    site = SiteService.get_by_slug(slug)
    data = request.get_json(silent=True) or {}
    force = bool(data.get('force'))
    if data.get('path'):
        result = ImportService.import_file(site, data['path'], force=force)
        return jsonify({'success': True, 'result': result.to_dict()})
    report = ImportService.import_directory(site, data.get('dir'), force=force)
    return jsonify({'success': True, 'report': report.to_dict()})
