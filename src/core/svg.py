"""
Small SVG string builders and the bracket document renderer.
"""
from typing import Dict, Iterable, Optional
from xml.sax.saxutils import escape, quoteattr

SVG_NAMESPACE = 'http://www.w3.org/2000/svg'


def fmt_number(value) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip('0').rstrip('.')


def attributes(attrs: Optional[Dict]) -> str:
    if not attrs:
        return ''
    parts = []
    for name, value in attrs.items():
        if value is None:
            continue
        parts.append(f"{name}={quoteattr(fmt_number(value))}")
    return ' ' + ' '.join(parts) if parts else ''


def element(tag: str, attrs: Optional[Dict] = None, children: Iterable[str] = None, text: str = None) -> str:
    """Serialize one element; ``text`` is escaped, ``children`` are trusted markup."""
    body = ''
    if text is not None:
        body += escape(str(text))
    if children:
        body += ''.join(children)
    if not body:
        return f"<{tag}{attributes(attrs)}/>"
    return f"<{tag}{attributes(attrs)}>{body}</{tag}>"


def render_round_header(header, style: dict) -> str:
    round_header = style['round_header']
    return element('g', {'class': 'round-header'}, [
        element('rect', {
            'x': header.x,
            'y': header.y,
            'width': header.width,
            'height': round_header['height'],
            'fill': round_header['background_color'],
            'rx': 3,
            'ry': 3,
        }),
        element('text', {
            'x': header.x + header.width / 2,
            'y': header.y + round_header['height'] / 2,
            'style': f"font-family: {round_header['font_family']}; font-size: {round_header['font_size']}px; "
                     f"color: {round_header['font_color']}",
            'fill': round_header['font_color'],
            'dominant-baseline': 'middle',
            'text-anchor': 'middle',
        }, text=header.label),
    ])


def render_connector(connector) -> str:
    return element('path', {
        'd': connector.d,
        'fill': 'transparent',
        'stroke': connector.color,
        'class': 'connector highlighted' if connector.highlighted else 'connector',
    })


def render_match_box(view, renderer, style: dict) -> str:
    width = style['width']
    box_height = style['box_height']
    return element('g', {
        'transform': f"translate({fmt_number(view.x)}, {fmt_number(view.y)})",
        'data-match-id': view.match.id,
    }, [
        element('svg', {
            'width': width,
            'height': box_height,
            'viewBox': f"0 0 {fmt_number(width)} {fmt_number(box_height)}",
        }, [renderer.render(view)]),
    ])


def render_bracket_svg(layout, renderer, style: dict) -> str:
    """Serialize a computed bracket layout as a standalone SVG document.

    Connectors are drawn first so match boxes paint over line ends;
    highlighted connectors go last so they stay on top of plain ones.
    """
    children = []
    if style['round_header'].get('is_shown'):
        children.extend(render_round_header(header, style) for header in layout.headers)
    plain = [c for c in layout.connectors if not c.highlighted]
    lit = [c for c in layout.connectors if c.highlighted]
    children.extend(render_connector(c) for c in plain + lit)
    children.extend(render_match_box(view, renderer, style) for view in layout.match_views)
    return element('svg', {
        'xmlns': SVG_NAMESPACE,
        'width': layout.width,
        'height': layout.height,
        'viewBox': f"0 0 {fmt_number(layout.width)} {fmt_number(layout.height)}",
    }, children)
