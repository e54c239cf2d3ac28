import os
import threading
import pytest
from folio.exceptions import SiteBusy
from folio.models import Layout
from folio.services.generation_service import GenerationService
from folio.services.site_service import SiteService
from folio.utils.locks import site_locks
from tests.helpers import get_section, html_path, read


def test_generates_index_detail_and_author_pages(app, site, make_content, make_contributor):
    ada = make_contributor('ada', name='Ada', surname='Lovelace', bio='Engines')
    post = make_content('Hello World', section='notes', tags=['intro'], contributor=ada)
    page = make_content('About', kind='page')
    make_content('Hidden draft', draft=True)

    report = GenerationService.generate(site)

    assert report.errors == []
    assert report.pages_generated == 2
    assert report.author_pages == 1
    # 首页 + notes 栏目
    assert report.index_pages == 2

    detail = html_path(app, site, 'notes', post.slug, 'index.html')
    assert os.path.isfile(detail)
    body = read(detail)
    assert 'Body of Hello World' in body
    assert 'Ada Lovelace' in body

    assert os.path.isfile(html_path(app, site, page.slug, 'index.html'))
    assert os.path.isfile(html_path(app, site, 'authors', 'ada', 'index.html'))
    assert os.path.isfile(html_path(app, site, 'static', 'css', 'main.css'))

    index = read(html_path(app, site, 'index.html'))
    assert 'Hello World' in index
    # page 类型不进入列表
    assert 'About' not in index.split('<main')[1]
    assert 'Hidden draft' not in index


def test_bare_username_gets_author_page(app, site, make_content):
    make_content('Guest post', author_username='guest')
    report = GenerationService.generate(site)
    assert report.author_pages == 1
    assert os.path.isfile(html_path(app, site, 'authors', 'guest', 'index.html'))


def test_index_is_paginated(app, site, settings, make_content):
    settings(**{'ssg.index.maxitems': '5'})
    for i in range(12):
        make_content(f'Post {i}', published=i + 1)

    report = GenerationService.generate(site)

    assert report.index_pages == 3
    assert os.path.isfile(html_path(app, site, 'page', '2', 'index.html'))
    assert os.path.isfile(html_path(app, site, 'page', '3', 'index.html'))
    assert not os.path.exists(html_path(app, site, 'page', '4'))
    assert 'Post 0' in read(html_path(app, site, 'index.html'))


def test_regeneration_removes_stale_pages(app, db, site, make_content):
    post = make_content('Soon unpublished')
    GenerationService.generate(site)
    stale = html_path(app, site, post.slug, 'index.html')
    assert os.path.isfile(stale)

    post.draft = True
    db.session.commit()
    GenerationService.generate(site)
    assert not os.path.exists(stale)


def test_search_sitemap_and_robots(app, site, settings, make_content):
    settings(**{
        'ssg.search.google.enabled': 'true',
        'ssg.search.google.id': 'cse-123',
        'ssg.site.base_url': 'https://example.org/',
        'ssg.robots.txt': 'User-agent: *\nAllow: /',
    })
    post = make_content('Mapped')

    GenerationService.generate(site)

    assert 'cse-123' in read(html_path(app, site, 'search', 'index.html'))
    sitemap = read(html_path(app, site, 'sitemap.xml'))
    assert '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">' in sitemap
    assert f'<loc>https://example.org/{post.slug}/</loc>' in sitemap
    assert '<loc>https://example.org/</loc>' in sitemap
    robots = read(html_path(app, site, 'robots.txt'))
    assert robots.startswith('User-agent: *')
    assert robots.rstrip().endswith('Sitemap: https://example.org/sitemap.xml')


def test_no_sitemap_without_base_url(app, site, make_content):
    make_content('Plain')
    GenerationService.generate(site)
    assert not os.path.exists(html_path(app, site, 'sitemap.xml'))
    assert not os.path.exists(html_path(app, site, 'search'))
    assert not os.path.exists(html_path(app, site, 'robots.txt'))


def test_render_failure_is_reported_and_generation_continues(app, db, site, make_content):
    bad = Layout(site_id=site.id, name='bad',
                 code="{% if page.kind.value == 'detail' %}{{ page.content.missing() }}{% endif %}ok")
    db.session.add(bad)
    db.session.commit()
    section = get_section(site, 'lab')
    section.layout_id = bad.id
    db.session.commit()

    broken = make_content('Broken', section='lab')
    fine = make_content('Fine')

    report = GenerationService.generate(site)

    assert report.pages_generated == 1
    assert [e['item'] for e in report.errors] == [broken.short_id]
    assert os.path.isfile(html_path(app, site, fine.slug, 'index.html'))
    assert read(html_path(app, site, 'lab', 'index.html')) == 'ok'


def test_broken_default_layout_is_reported_for_every_page(app, db, site, settings, make_content):
    broken = Layout(site_id=site.id, name='broken', code='{{ page.missing.attr }}')
    db.session.add(broken)
    db.session.commit()
    site.default_layout_id = broken.id
    db.session.commit()
    settings(**{'ssg.search.google.enabled': 'true'})
    post = make_content('Orphan', author_username='ghost')

    report = GenerationService.generate(site)

    items = [e['item'] for e in report.errors]
    assert 'index:/:1' in items
    assert post.short_id in items
    assert 'author:ghost' in items
    assert 'search' in items
    assert report.pages_generated == 0
    assert report.index_pages == 0


def test_index_only_failure_keeps_detail_pages(app, db, site, make_content):
    picky = Layout(site_id=site.id, name='picky',
                   code="{% if page.kind.value == 'index' %}{{ page.missing.attr }}{% endif %}{{ page.title }}")
    db.session.add(picky)
    db.session.commit()
    site.default_layout_id = picky.id
    db.session.commit()
    post = make_content('Survivor')

    report = GenerationService.generate(site)

    assert [e['item'] for e in report.errors] == ['index:/:1']
    assert report.pages_generated == 1
    assert read(html_path(app, site, post.slug, 'index.html')) == 'Survivor'
    assert not os.path.exists(html_path(app, site, 'index.html'))


def test_related_block_rendered_on_detail_page(app, site, make_content):
    first = make_content('First python', tags=['python'])
    make_content('Second python', tags=['python'])

    GenerationService.generate(site)

    assert 'Second python' in read(html_path(app, site, first.slug, 'index.html'))


def test_generation_refuses_when_site_slot_is_held_elsewhere(site):
    held = threading.Event()
    release = threading.Event()

    def hold():
        with site_locks.slot(site.id):
            held.set()
            release.wait(5)

    worker = threading.Thread(target=hold)
    worker.start()
    held.wait(5)
    try:
        with pytest.raises(SiteBusy):
            with site_locks.slot(site.id, blocking=False):
                pass
    finally:
        release.set()
        worker.join()


def test_deleting_site_keeps_generated_output(app, site, make_content):
    make_content('Kept')
    GenerationService.generate(site)
    index = html_path(app, site, 'index.html')
    SiteService.delete_site(site)
    assert os.path.isfile(index)


def test_default_stylesheet_skipped_when_every_layout_excludes_it(app, db, site, make_content):
    own = Layout(site_id=site.id, name='own', code='{{ page.title }}', css='body{}', exclude_default_css=True)
    db.session.add(own)
    db.session.commit()
    site.default_layout_id = own.id
    db.session.commit()
    make_content('Styled')

    GenerationService.generate(site)

    assert not os.path.exists(html_path(app, site, 'static', 'css', 'main.css'))
    assert read(html_path(app, site, 'index.html')) == 'Field Notes'
