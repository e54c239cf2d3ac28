import click
from flask import current_app
from flask.cli import with_appcontext
from folio.extensions import db
from folio.exceptions import FolioException
from folio.models import Site, Content, Section, Contributor, Tag, ImportRecord
from folio.services.site_service import SiteService
from folio.services.settings_service import SettingsService


def _fail(e):
    click.echo(click.style(f'✘ {e.message}', fg='red'))
    raise SystemExit(1)


@click.command('status')
@with_appcontext
def status():
    """[验证指令] 查看当前数据库中的站点统计。"""
    click.echo(click.style('📊 FOLIO 数据库状态:', fg='cyan', bold=True))

    try:
        sites = Site.query.order_by(Site.slug).all()
        click.echo(f" - 站点 (Sites): \t{len(sites)}")
        for site in sites:
            contents = Content.query.filter_by(site_id=site.id).count()
            drafts = Content.query.filter_by(site_id=site.id, draft=True).count()
            published = site.last_published_at.strftime('%Y-%m-%d %H:%M') if site.last_published_at else '从未发布'
            click.echo(f"   · {site.slug}: {contents} 篇内容 ({drafts} 草稿), "
                       f"{Section.query.filter_by(site_id=site.id).count()} 栏目, "
                       f"{Contributor.query.filter_by(site_id=site.id).count()} 贡献者, "
                       f"{Tag.query.filter_by(site_id=site.id).count()} 标签, "
                       f"{ImportRecord.query.filter_by(site_id=site.id).count()} 导入记录, 上次发布: {published}")

        if sites:
            click.echo(click.style('✔ 数据库连接正常。', fg='green'))
        else:
            click.echo(click.style('⚠ 还没有站点，请运行 flask init-site 创建。', fg='yellow'))

    except Exception as e:
        click.echo(click.style(f'✘ 数据库读取失败: {str(e)}', fg='red'))
        click.echo("请检查是否执行了 'flask db upgrade'")


@click.command('init-site')
@click.argument('slug')
@click.option('--name', default=None, help='站点名称 (默认同 slug)')
@click.option('--create-tables', is_flag=True, help='先创建数据表')
@with_appcontext
def init_site(slug, name, create_tables):
    """创建站点：根栏目 + 默认设置 + 工作区目录。"""
    if create_tables:
        db.create_all()
    try:
        site = SiteService.create_site(slug, name or slug)
    except FolioException as e:
        _fail(e)
    click.echo(click.style(f'✔ 站点 {site.slug} 已创建', fg='green', bold=True))


@click.command('generate')
@click.argument('slug')
@with_appcontext
def generate(slug):
    """全量生成站点 HTML。"""
    from folio.services.generation_service import GenerationService
    try:
        site = SiteService.get_by_slug(slug)
        report = GenerationService.generate(site)
    except FolioException as e:
        _fail(e)

    click.echo(click.style(f'🏗️ 生成完成: {site.slug}', fg='cyan', bold=True))
    click.echo(f"  → 内容页: {report.pages_generated}")
    click.echo(f"  → 列表页: {report.index_pages}")
    click.echo(f"  → 作者页: {report.author_pages}")
    for err in report.errors:
        click.echo(click.style(f"  ⚠ {err['item']}: {err['error']}", fg='yellow'))


def _print_push_result(result):
    if result.status == 'no_changes':
        click.echo(click.style('ℹ 没有变化，未提交。', fg='yellow'))
        return
    click.echo(click.style(f'✔ {result.status}: {result.commit_hash}', fg='green', bold=True))
    if result.commit_url:
        click.echo(f"  {result.commit_url}")
    click.echo(f"  +{result.added} ~{result.modified} -{result.deleted}")


@click.command('publish')
@click.argument('slug')
@with_appcontext
def publish(slug):
    """生成并推送到发布仓库。"""
    from folio.services.publish_service import PublishService
    from folio.utils.git import ExecutionContext
    try:
        site = SiteService.get_by_slug(slug)
        result = PublishService.publish(site, context=ExecutionContext(timeout=current_app.config['GIT_TIMEOUT']))
    except FolioException as e:
        _fail(e)
    _print_push_result(result)


@click.command('backup')
@click.argument('slug')
@with_appcontext
def backup(slug):
    """导出 Markdown 并推送到备份仓库。"""
    from folio.services.publish_service import PublishService
    from folio.utils.git import ExecutionContext
    try:
        site = SiteService.get_by_slug(slug)
        result = PublishService.backup(site, context=ExecutionContext(timeout=current_app.config['GIT_TIMEOUT']))
    except FolioException as e:
        _fail(e)
    _print_push_result(result)


@click.command('plan')
@click.argument('slug')
@click.option('--backup', 'purpose', flag_value='backup', help='预演备份而非发布')
@with_appcontext
def plan(slug, purpose):
    """预演发布：列出将要推送的变更，不提交。"""
    from folio.services.publish_service import PublishService
    from folio.utils.git import ExecutionContext
    try:
        site = SiteService.get_by_slug(slug)
        result = PublishService.plan(site, purpose=purpose or 'publish',
                                     context=ExecutionContext(timeout=current_app.config['GIT_TIMEOUT']))
    except FolioException as e:
        _fail(e)
    for label, paths in (('+', result.added), ('~', result.modified), ('-', result.deleted)):
        for path in paths:
            click.echo(f'  {label} {path}')
    click.echo(click.style(result.summary, fg='cyan'))


@click.command('export')
@click.argument('slug')
@click.option('--out', default=None, help='导出目录 (默认工作区 markdown/)')
@with_appcontext
def export(slug, out):
    """导出 Markdown 备份到本地目录。"""
    from folio.services.export_service import ExportService
    try:
        site = SiteService.get_by_slug(slug)
        report = ExportService.export_site(site, out)
    except FolioException as e:
        _fail(e)
    click.echo(click.style(f'📦 导出 {report.content_exported} 篇内容, {report.images_copied} 张图片', fg='green'))
    for err in report.errors:
        click.echo(click.style(f"  ⚠ {err['item']}: {err['error']}", fg='yellow'))


@click.command('restore')
@click.argument('slug')
@click.argument('path', type=click.Path(exists=True, file_okay=False))
@with_appcontext
def restore(slug, path):
    """从备份目录恢复内容（每次都会新建内容记录）。"""
    from folio.services.restore_service import RestoreService
    try:
        site = SiteService.get_by_slug(slug)
        report = RestoreService.restore_site(site, path)
    except FolioException as e:
        _fail(e)
    click.echo(click.style(f'♻️ 恢复完成 ({report.mode}): {report.contents_created} 篇内容', fg='green'))
    click.echo(f"  栏目 {report.sections}, 贡献者 {report.contributors}, 标签 {report.tags}, "
               f"布局 {report.layouts}, 图片 {report.images}")
    for err in report.errors:
        click.echo(click.style(f"  ⚠ {err['item']}: {err['error']}", fg='yellow'))


STATUS_COLORS = {
    'new': 'cyan',
    'synced': 'green',
    'reimport-available': 'blue',
    'conflict': 'red',
    'missing': 'yellow',
}


@click.command('import-scan')
@click.argument('slug')
@click.option('--dir', 'directory', default=None, help='导入目录 (默认 IMPORT_BASE_PATH/<slug>)')
@with_appcontext
def import_scan(slug, directory):
    """扫描导入目录并显示每个文件的状态。"""
    from folio.services.import_service import ImportService
    try:
        site = SiteService.get_by_slug(slug)
        entries = ImportService.scan(site, directory)
    except FolioException as e:
        _fail(e)
    if not entries:
        click.echo(click.style('⚠ 没有找到 Markdown 文件。', fg='yellow'))
    for entry in entries:
        label = click.style(f'{entry.status:<20}', fg=STATUS_COLORS.get(entry.status, 'white'))
        click.echo(f"{label} {entry.path}")
        if entry.error:
            click.echo(click.style(f"    ✘ {entry.error}", fg='red'))


@click.command('import-file')
@click.argument('slug')
@click.argument('path', required=False)
@click.option('--dir', 'directory', default=None, help='批量导入的目录')
@click.option('--force', is_flag=True, help='强制覆盖冲突的内容')
@with_appcontext
def import_file(slug, path, directory, force):
    """导入单个文件，或不带 PATH 时批量导入目录。"""
    from folio.services.import_service import ImportService
    try:
        site = SiteService.get_by_slug(slug)
        if path:
            result = ImportService.import_file(site, path, force=force)
            click.echo(click.style(f'✔ {result.action}: {result.content.short_id}', fg='green'))
            return
        report = ImportService.import_directory(site, directory, force=force)
    except FolioException as e:
        _fail(e)
    click.echo(click.style(f'📥 新建 {report.created}, 更新 {report.updated}, 跳过 {report.skipped}', fg='green'))
    for conflict in report.conflicts:
        click.echo(click.style(f"  ⚠ 冲突 (需 --force): {conflict}", fg='yellow'))
    for err in report.errors:
        click.echo(click.style(f"  ✘ {err['file']}: {err['error']}", fg='red'))


@click.command('scheduler-tick')
@with_appcontext
def scheduler_tick():
    """立即执行一次定时发布检查。"""
    from folio.services.scheduler_service import scheduler
    outcomes = scheduler.run_tick()
    if not outcomes:
        click.echo('没有到期内容。')
    for slug, outcome in outcomes.items():
        color = 'green' if outcome == 'published' else ('red' if outcome == 'failed' else 'white')
        click.echo(click.style(f'  {slug}: {outcome}', fg=color))


@click.command('set-setting')
@click.argument('slug')
@click.argument('key')
@click.argument('value')
@with_appcontext
def set_setting(slug, key, value):
    """修改站点设置 (按 ref_key)。"""
    try:
        site = SiteService.get_by_slug(slug)
    except FolioException as e:
        _fail(e)
    SettingsService.set(site, key, value)
    db.session.commit()
    click.echo(click.style(f'✔ {key} = {value}', fg='green'))
