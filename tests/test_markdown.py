from folio.models import Image
from folio.services.generation_service import GenerationService
from folio.utils.markdown import embed_html, render
from tests.helpers import html_path, read


def test_render_extensions():
    html = render('# Title\n\n| a | b |\n|---|---|\n| 1 | 2 |\n\n```python\nprint(1)\n```\n')
    assert '<h1 id="title">Title</h1>' in html
    assert '<table>' in html
    assert '<code class="language-python">' in html


def test_render_empty():
    assert render('') == ''
    assert render(None) == ''


def test_plain_image_gets_lazy_class():
    html = render('![A cat](/images/cat.png)')
    assert '<img src="/images/cat.png" alt="A cat" class="content-img" loading="lazy">' in html
    assert '<figure' not in html


def test_caption_after_separator():
    html = render('![A cat|||A sleepy cat](/images/cat.png)')
    assert '<figure class="content-figure">' in html
    assert 'alt="A cat"' in html
    assert '<figcaption class="content-caption">A sleepy cat</figcaption>' in html


def test_credit_from_image_metadata():
    images = {'/images/cat.png': {'title': 'Cat', 'attribution': 'Jane Roe',
                                  'attribution_url': 'https://example.org/jane'}}
    html = render('![A cat](/images/cat.png)', images)
    assert '<figure class="content-figure">' in html
    assert '<span class="content-credit-title">Cat</span>' in html
    assert '<a href="https://example.org/jane" target="_blank" rel="noopener">Jane Roe</a>' in html
    assert 'content-caption' not in html


def test_credit_without_link_is_escaped():
    html = render('![x](/a.png)', {'/a.png': {'attribution': 'A & B'}})
    assert '<span class="content-credit-attr">A &amp; B</span>' in html


def test_youtube_embed_with_ratio():
    html = render('```embed\nprovider: youtube\nid: abc123\nratio: 4:3\n```\n')
    assert '<div class="embed-container ratio-4-3">' in html
    assert '<iframe src="https://www.youtube.com/embed/abc123" title="YouTube video"' in html
    assert 'allowfullscreen' in html
    assert '<pre>' not in html


def test_embed_defaults_to_widescreen():
    html = render('```embed\nprovider: vimeo\nid: "76979871"\ntitle: Launch\n```\n')
    assert '<div class="embed-container ratio-16-9">' in html
    assert 'src="https://player.vimeo.com/video/76979871" title="Launch"' in html


def test_soundcloud_id_becomes_quoted_url():
    html = embed_html({'provider': 'soundcloud', 'id': 'artist/track'})
    assert 'src="https://w.soundcloud.com/player/?url=https%3A%2F%2Fsoundcloud.com%2Fartist%2Ftrack"' in html
    assert ' allow=' not in html


def test_tiktok_vertical_embed():
    html = embed_html({'provider': 'TikTok', 'id': '7000', 'ratio': '9:16'})
    assert 'embed-container ratio-9-16' in html
    assert 'https://www.tiktok.com/embed/v2/7000' in html


def test_unusable_embed_blocks_are_kept():
    for block in ('provider: myspace\nid: 1', 'provider: youtube', 'provider: [unclosed', 'just text'):
        html = render(f'```embed\n{block}\n```\n')
        assert '<pre><code class="language-embed">' in html
        assert 'iframe' not in html


def test_embed_html_rejects_non_mapping():
    assert embed_html(None) is None
    assert embed_html('youtube') is None


def test_generated_page_credits_attributed_image(app, db, site, make_content):
    db.session.add(Image(site_id=site.id, file_path='notes/engine.png', file_name='engine.png',
                         title='Engine', attribution='Science Museum',
                         attribution_url='https://example.org/museum'))
    db.session.commit()
    post = make_content('Credited', body='# Credited\n\n![The engine](/images/notes/engine.png)\n')

    report = GenerationService.generate(site)

    assert report.errors == []
    detail = read(html_path(app, site, post.slug, 'index.html'))
    assert 'class="content-credit"' in detail
    assert 'Science Museum' in detail
