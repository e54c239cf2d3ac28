"""
Markdown -> HTML 渲染
转换后再做两步 HTML 后处理：
- 图片：![alt|||图注](src) 拆出图注；图片元数据中有署名时附加 credit
- 嵌入：```embed 代码块（YAML）替换为 iframe
"""
import re
import html
from urllib.parse import quote_plus
import yaml
import markdown as md
from markupsafe import escape

EXTENSIONS = ['fenced_code', 'tables', 'toc', 'sane_lists', 'md_in_html']

CAPTION_SEP = '|||'

_IMG_RE = re.compile(r'<img\b[^>]*>', re.IGNORECASE)
_ATTR_RE = re.compile(r'(\w[\w-]*)="([^"]*)"')
_EMBED_RE = re.compile(r'<pre><code class="language-embed">(.*?)</code></pre>', re.DOTALL)

# provider -> (名称, 地址模板, allow 属性)
EMBED_PROVIDERS = {
    'youtube': ('YouTube', 'https://www.youtube.com/embed/{}',
                'accelerometer; autoplay; clipboard-write; encrypted-media; gyroscope; picture-in-picture'),
    'vimeo': ('Vimeo', 'https://player.vimeo.com/video/{}', 'autoplay; fullscreen; picture-in-picture'),
    'tiktok': ('TikTok', 'https://www.tiktok.com/embed/v2/{}', ''),
    'soundcloud': ('SoundCloud', 'https://w.soundcloud.com/player/?url={}', ''),
}

RATIOS = {
    '16:9': 'ratio-16-9',
    '4:3': 'ratio-4-3',
    '1:1': 'ratio-1-1',
    '9:16': 'ratio-9-16',
}


def _credit(meta):
    """图片署名 figcaption；meta 为 {title, attribution, attribution_url}"""
    attribution = (meta or {}).get('attribution')
    if not attribution:
        return ''
    title = escape(meta.get('title') or '')
    url = meta.get('attribution_url')
    if url:
        attr = f'<a href="{escape(url)}" target="_blank" rel="noopener">{escape(attribution)}</a>'
    else:
        attr = escape(attribution)
    return (f'<figcaption class="content-credit"><span class="content-credit-title">{title}</span>'
            f'<span class="content-credit-attr">{attr}</span></figcaption>')


def enhance_images(text, images=None):
    """
    处理 <img>：alt 中 '|||' 之后的部分作为图注；
    images 按 src 提供署名元数据。有图注或署名时包成 <figure>。
    """
    images = images or {}

    def repl(match):
        attrs = dict(_ATTR_RE.findall(match.group(0)))
        src = attrs.get('src')
        if src is None:
            return match.group(0)
        alt, _, caption = attrs.get('alt', '').partition(CAPTION_SEP)
        img = f'<img src="{src}" alt="{alt.strip()}" class="content-img" loading="lazy">'
        credit = _credit(images.get(src))
        caption = caption.strip()
        if not caption and not credit:
            return img
        # 属性值已经过转义，可直接作为文本
        figcaption = f'<figcaption class="content-caption">{caption}</figcaption>' if caption else ''
        return f'<figure class="content-figure">{img}{credit}{figcaption}</figure>'

    return _IMG_RE.sub(repl, text)


def embed_html(config):
    """
    把嵌入配置 {provider, id, ratio, title} 转为 iframe。
    配置不完整或 provider 不支持时返回 None。
    """
    if not isinstance(config, dict):
        return None
    provider = str(config.get('provider') or '').lower()
    media_id = str(config.get('id') or '').strip()
    if provider not in EMBED_PROVIDERS or not media_id:
        return None

    name, pattern, allow = EMBED_PROVIDERS[provider]
    ratio_class = RATIOS.get(str(config.get('ratio') or '16:9'), RATIOS['16:9'])
    if provider == 'soundcloud':
        if not media_id.startswith('http'):
            media_id = 'https://soundcloud.com/' + media_id
        media_id = quote_plus(media_id)
    title = config.get('title') or f'{name} video'
    allow_attr = f' allow="{allow}"' if allow else ''
    return (f'<div class="embed-container {ratio_class}">'
            f'<iframe src="{escape(pattern.format(media_id))}" title="{escape(title)}"{allow_attr} '
            f'allowfullscreen loading="lazy"></iframe></div>')


def process_embeds(text):
    """
    ```embed 代码块替换为 iframe；无法解析的块原样保留。
    用 BaseLoader 读取，所有值都是字符串，ratio: 4:3 不会被当作六十进制数。
    """
    def repl(match):
        try:
            config = yaml.load(html.unescape(match.group(1)).strip(), Loader=yaml.BaseLoader)
        except yaml.YAMLError:
            return match.group(0)
        return embed_html(config) or match.group(0)

    return _EMBED_RE.sub(repl, text)


def render(text, images=None):
    """纯函数：每次调用新建 Markdown 实例，线程安全"""
    if not text:
        return ''
    converter = md.Markdown(extensions=EXTENSIONS)
    output = converter.convert(text)
    output = enhance_images(output, images)
    return process_embeds(output)
