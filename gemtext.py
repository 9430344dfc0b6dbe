import logging
from urllib.parse import quote

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, NavigableString, PreformattedString, Tag


logger = logging.getLogger(__name__)


HEADINGS = {'h1': 1, 'h2': 2, 'h3': 3, 'h4': 4, 'h5': 5, 'h6': 6}
MAX_HEADING_DEPTH = 3

LINK_MARKER = '=>'
BULLET_MARKER = '*'
BOLD_MARKER = '*'

# characters left alone when escaping a link target, as in a URI path
PATH_SAFE = "/:@&=+$"

NO_RENDER_MESSAGE = 'Could not render page'


class ParseError(Exception):
    pass


class Footer:
    """Links seen since the last flush, emitted as a block of link lines."""

    def __init__(self):
        self.links = []

    def add_link(self, text, href):
        self.links.append((text, href))

    def flush(self):
        lines = ['\n']
        for text, href in self.links:
            lines.append(f'{LINK_MARKER} {quote(href, safe=PATH_SAFE)} {text}\n')
        self.reset()
        return ''.join(lines)

    def reset(self):
        self.links = []

    def __len__(self):
        return len(self.links)


def strip_newlines(text):
    return text.replace('\n', '')


def first_child(node):
    return node.contents[0] if node.contents else None


def get_text(node):
    parts = []
    collect_text(parts, node)
    return ''.join(parts)


def collect_text(parts, node):
    if isinstance(node, PreformattedString):
        return
    if isinstance(node, NavigableString):
        parts.append(strip_newlines(str(node)))
    elif isinstance(node, Tag):
        for child in node.children:
            collect_text(parts, child)


def is_element(node, name):
    return isinstance(node, Tag) and not isinstance(node, BeautifulSoup) and node.name == name


def convert(source, parse):
    """Parse article source and render it as gemtext.

    `parse` takes the source text and returns a document tree, raising
    ParseError when the source cannot be parsed.
    """
    try:
        doc = parse(source + '\n')
    except ParseError as e:
        logger.warning(f'Parse failed: {e}')
        return f'could not parse: {e}'

    if not isinstance(doc, Tag):
        logger.warning(f'Parser returned no document: {doc!r}')
        return NO_RENDER_MESSAGE

    out = []
    footer = Footer()
    try:
        render(out, footer, doc)
    except RecursionError:
        logger.error('Document nested too deeply to render')
        return NO_RENDER_MESSAGE
    return ''.join(out) + footer.flush()


def render(out, footer, node):
    while node is not None:
        if isinstance(node, (Comment, Doctype, Declaration)):
            pass
        elif isinstance(node, PreformattedString):
            out.append('unknown\n')
        elif isinstance(node, NavigableString):
            out.append(strip_newlines(str(node)))
        elif isinstance(node, BeautifulSoup):
            render(out, footer, first_child(node))
        elif isinstance(node, Tag):
            node = render_element(out, footer, node)
        else:
            out.append('unknown\n')

        if node is None:
            break
        node = node.next_sibling


def render_element(out, footer, node):
    """Render one element, returning the node the sibling walk resumes from."""
    name = node.name

    if name in HEADINGS:
        out.append(footer.flush())
        marker = '#' * min(HEADINGS[name], MAX_HEADING_DEPTH)
        out.append(f'{marker} {get_text(node)}\n')

    elif name == 'li':
        item = []
        render(item, footer, first_child(node))
        text = ''.join(item).strip()
        if text and text != '.':
            out.append(f'{BULLET_MARKER} {text}\n')

    elif name == 'p':
        child = first_child(node)
        if child is not None and not (is_text(child) and str(child) == ''):
            out.append('\n\n')
            render(out, footer, child)
            out.append('\n')
            out.append(footer.flush())

    elif name == 'a':
        href = node.get('href')
        if href:
            text = get_text(node)
            out.append(text)
            footer.add_link(text, href)
        else:
            render(out, footer, first_child(node))

    elif name == 'b':
        out.append(BOLD_MARKER)

    elif name == 'ref':
        # the parser brackets citations with a pair of sibling ref elements
        sibling = node.next_sibling
        while sibling is not None and not is_element(sibling, 'ref'):
            sibling = sibling.next_sibling
        return sibling

    return node


def is_text(node):
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)
