import os
import pytest
from folio.exceptions import NotFound, SyncError
from folio.models import Content, ContentImage, Contributor, Image, Layout, Section, Tag
from folio.services.export_service import ExportService, layout_stem, profile_stem
from folio.services.restore_service import RestoreService
from folio.services.site_service import SiteService
from folio.utils import frontmatter, workspace
from folio.utils.file_helper import write_text
from tests.helpers import get_section, read


@pytest.fixture
def populated(app, db, site, make_content, make_contributor):
    """带布局、栏目、贡献者头像、标签与头图的站点"""
    layout = Layout(site_id=site.id, name='Clean Slate', code='<main>{{ page.title }}</main>',
                    css='main{}', exclude_default_css=True)
    db.session.add(layout)
    db.session.flush()
    site.default_layout_id = layout.id
    notes = get_section(site, 'notes', 'Notes')
    notes.layout_id = layout.id

    write_text(os.path.join(app.config['PROFILES_PATH'], 'ada.png'), 'png')
    ada = make_contributor('ada', name='Ada', surname='Lovelace', bio='Engines', photo_path='ada.png')
    ada.social_links_map = {'github': 'https://github.com/ada'}

    post = make_content('Analytical Engine', section='notes', tags=['math', 'history'],
                        contributor=ada, summary='Notes on the engine', series='Engines', series_order=2)
    draft = make_content('Unfinished thoughts', draft=True, published=None)

    write_text(os.path.join(workspace.images_dir(site), 'notes', 'engine.png'), 'img')
    image = Image(site_id=site.id, file_path='notes/engine.png', file_name='engine.png',
                  alt_text='The engine', caption='Difference engine')
    db.session.add(image)
    db.session.add(ContentImage(content=post, image=image, is_header=True, order_num=1))
    db.session.commit()
    return {'post': post, 'draft': draft, 'layout': layout, 'contributor': ada}


def test_export_writes_content_tree_and_meta(app, site, populated):
    report = ExportService.export_site(site)
    root = workspace.markdown_dir(site)
    post, draft = populated['post'], populated['draft']

    assert report.errors == []
    assert report.content_exported == 2
    assert report.images_copied == 1
    assert report.profiles_copied == 1

    meta, body = frontmatter.parse(read(os.path.join(root, 'content', 'notes', f'{post.slug}.md')))
    assert meta['title'] == 'Analytical Engine'
    assert meta['section'] == 'notes'
    assert meta['draft'] is False
    assert meta['tags'] == ['history', 'math']
    assert meta['contributor'] == 'ada'
    assert meta['image'] == 'notes/engine.png'
    assert meta['series_order'] == 2
    assert body.startswith('# Analytical Engine')

    # 草稿也会导出，没有栏目的内容放在默认目录
    draft_meta, _ = frontmatter.parse(read(os.path.join(root, 'content', 'posts', f'{draft.slug}.md')))
    assert draft_meta['draft'] is True

    for name in ('layouts.yml', 'sections.yml', 'contributors.yml', 'tags.yml', 'images.yml',
                 'content_images.yml'):
        assert os.path.isfile(os.path.join(root, 'meta', name))
    stem = layout_stem('Clean Slate')
    assert read(os.path.join(root, 'meta', 'layouts', f'{stem}.html')) == '<main>{{ page.title }}</main>'
    assert os.path.isfile(os.path.join(root, 'images', 'notes', 'engine.png'))
    assert os.path.isfile(os.path.join(root, 'profiles', 'ada.png'))


def test_export_is_a_full_projection(site, populated):
    root = workspace.markdown_dir(site)
    write_text(os.path.join(root, 'content', 'stale.md'), 'old')
    write_text(os.path.join(root, '.git', 'HEAD'), 'ref: refs/heads/main')

    ExportService.export_site(site)

    assert not os.path.exists(os.path.join(root, 'content', 'stale.md'))
    assert os.path.isfile(os.path.join(root, '.git', 'HEAD'))


def test_rich_restore_into_another_site(app, site, populated):
    ExportService.export_site(site)
    copy = SiteService.create_site('copy', 'Copy')

    report = RestoreService.restore_site(copy, workspace.markdown_dir(site))

    assert report.mode == 'rich'
    assert report.errors == []
    assert report.contents_created == 2

    layout = Layout.query.filter_by(site_id=copy.id, name='Clean Slate').one()
    assert copy.default_layout_id == layout.id
    assert layout.css == 'main{}'
    assert layout.exclude_default_css is True

    notes = Section.query.filter_by(site_id=copy.id, path='notes').one()
    assert notes.name == 'Notes'
    assert notes.layout_id == layout.id

    ada = Contributor.query.filter_by(site_id=copy.id, handle='ada').one()
    assert ada.bio == 'Engines'
    assert ada.social_links_map == {'github': 'https://github.com/ada'}
    assert ada.photo_path == os.path.join('copy', 'ada.png')
    assert os.path.isfile(os.path.join(app.config['PROFILES_PATH'], 'copy', 'ada.png'))

    post = Content.query.filter_by(site_id=copy.id, heading='Analytical Engine').one()
    assert post.draft is False
    assert post.section_id == notes.id
    assert post.contributor_id == ada.id
    assert [t.name for t in post.tags] == ['history', 'math']
    assert post.header_image.file_path == 'notes/engine.png'
    assert os.path.isfile(os.path.join(workspace.images_dir(copy), 'notes', 'engine.png'))

    draft = Content.query.filter_by(site_id=copy.id, heading='Unfinished thoughts').one()
    assert draft.draft is True
    assert draft.section.is_root


def test_restore_twice_duplicates_contents_only(site, populated):
    ExportService.export_site(site)
    copy = SiteService.create_site('copy', 'Copy')
    source = workspace.markdown_dir(site)

    RestoreService.restore_site(copy, source)
    second = RestoreService.restore_site(copy, source)

    assert second.contents_created == 2
    assert second.sections == 0
    assert second.tags == 0
    assert Content.query.filter_by(site_id=copy.id).count() == 4
    assert Tag.query.filter_by(site_id=copy.id).count() == 2
    assert Section.query.filter_by(site_id=copy.id, path='notes').count() == 1
    assert Layout.query.filter_by(site_id=copy.id).count() == 1


def test_restore_keeps_slugs_and_timestamps(site, populated):
    post = populated['post']
    originals = {c.slug: c for c in Content.query.filter_by(site_id=site.id)}
    ExportService.export_site(site)
    copy = SiteService.create_site('copy', 'Copy')

    RestoreService.restore_site(copy, workspace.markdown_dir(site))

    restored = {c.slug: c for c in Content.query.filter_by(site_id=copy.id)}
    assert set(restored) == set(originals)
    assert restored[post.slug].short_id == post.short_id
    assert restored[post.slug].created_at == post.created_at
    assert restored[post.slug].updated_at == post.updated_at


def test_restore_into_same_site_gets_fresh_short_ids(site, populated):
    ExportService.export_site(site)
    before = {c.short_id for c in Content.query.filter_by(site_id=site.id)}

    report = RestoreService.restore_site(site, workspace.markdown_dir(site))

    assert report.contents_created == 2
    short_ids = [c.short_id for c in Content.query.filter_by(site_id=site.id)]
    assert len(short_ids) == 4
    assert len(set(short_ids)) == 4
    assert before < set(short_ids)


def test_profile_photo_round_trip_with_unsafe_handle(app, site, make_contributor):
    write_text(os.path.join(app.config['PROFILES_PATH'], 'jd.png'), 'png')
    make_contributor('jane doe', name='Jane', photo_path='jd.png')

    report = ExportService.export_site(site)
    root = workspace.markdown_dir(site)
    assert report.profiles_copied == 1
    assert os.path.isfile(os.path.join(root, 'profiles', 'jane_doe.png'))

    copy = SiteService.create_site('copy', 'Copy')
    restored = RestoreService.restore_site(copy, root)

    assert restored.errors == []
    jane = Contributor.query.filter_by(site_id=copy.id, handle='jane doe').one()
    assert jane.photo_path == os.path.join('copy', 'jane_doe.png')
    assert os.path.isfile(os.path.join(app.config['PROFILES_PATH'], 'copy', 'jane_doe.png'))


def test_basic_restore_creates_referenced_entities(tmp_path, site):
    source = tmp_path / 'plain'
    write_text(str(source / 'essays' / 'first.md'),
               '---\nsection: essays\ncontributor: grace\ntags: compilers, history\n---\n\nHello.\n')
    write_text(str(source / 'untitled.md'), '# Heading from body\n\nText.\n')
    write_text(str(source / 'nameonly.md'), 'just words\n')
    write_text(str(source / 'broken.md'), '---\ntitle: [unclosed\n---\nbody\n')

    report = RestoreService.restore_site(site, str(source))

    assert report.mode == 'basic'
    assert report.contents_created == 3
    assert [os.path.basename(e['item']) for e in report.errors] == ['broken.md']
    assert report.sections == 1
    assert report.contributors == 1
    assert report.tags == 2

    first = Content.query.filter_by(site_id=site.id, heading='first').one()
    assert first.draft is True
    assert first.section.path == 'essays'
    assert first.contributor.handle == 'grace'
    assert sorted(t.name for t in first.tags) == ['compilers', 'history']

    assert Content.query.filter_by(site_id=site.id, heading='Heading from body').count() == 1
    assert Content.query.filter_by(site_id=site.id, heading='nameonly').count() == 1


def test_restore_missing_directory(tmp_path, site):
    with pytest.raises(NotFound):
        RestoreService.restore_site(site, str(tmp_path / 'nope'))


class TestFrontmatter:

    def test_parse(self):
        meta, body = frontmatter.parse('---\ntitle: Hi\ntags: [a, b]\n---\n\nBody\n')
        assert meta == {'title': 'Hi', 'tags': ['a', 'b']}
        assert body == 'Body\n'

    def test_crlf_line_endings(self):
        meta, body = frontmatter.parse('---\r\ntitle: Hi\r\n---\r\nBody')
        assert meta == {'title': 'Hi'}
        assert body == 'Body'

    def test_without_frontmatter(self):
        assert frontmatter.parse('# Title\n') == ({}, '# Title\n')

    def test_unclosed_block_is_body(self):
        text = '---\ntitle: Hi\nno end here\n'
        assert frontmatter.parse(text) == ({}, text)

    def test_invalid_yaml(self):
        with pytest.raises(SyncError):
            frontmatter.parse('---\ntitle: [oops\n---\n')

    def test_non_mapping(self):
        with pytest.raises(SyncError):
            frontmatter.parse('---\n- a\n- b\n---\n')

    def test_dump_then_parse(self):
        text = frontmatter.dump({'title': 'Über', 'draft': False}, 'Body')
        assert text.startswith('---\ntitle: Über\n')
        assert frontmatter.parse(text) == ({'title': 'Über', 'draft': False}, 'Body')

    @pytest.mark.parametrize('meta, body, filename, expected', [
        ({'title': ' Given '}, '# Other', 'f.md', 'Given'),
        ({}, 'intro\n\n# First heading ##\n', 'f.md', 'First heading'),
        ({}, '## Only h2', '/x/some-file.md', 'some-file'),
        ({}, '', None, ''),
    ])
    def test_extract_title(self, meta, body, filename, expected):
        assert frontmatter.extract_title(meta, body, filename) == expected

    def test_as_list(self):
        assert frontmatter.as_list('a, b ,, c') == ['a', 'b', 'c']
        assert frontmatter.as_list(['x', 1, ' ']) == ['x', '1']
        assert frontmatter.as_list(None) == []


def test_layout_stem_falls_back_for_unsafe_names():
    assert layout_stem('Clean Slate') == 'Clean_Slate'
    assert layout_stem('布局').startswith('layout-')


def test_profile_stem_is_stable_per_handle():
    assert profile_stem('jane doe') == 'jane_doe'
    assert profile_stem('李雷') == profile_stem('李雷')
    assert profile_stem('李雷').startswith('contributor-')
    assert profile_stem('李雷') != profile_stem('韩梅梅')
