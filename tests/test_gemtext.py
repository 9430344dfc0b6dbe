"""Tests for gemtext: rendering parsed article trees as gemtext."""

from bs4 import BeautifulSoup
from bs4.element import CData, NavigableString

from gemtext import Footer, ParseError, convert, get_text, render


def soup(html):
    return BeautifulSoup(html, 'html.parser')


def render_body(html):
    out = []
    footer = Footer()
    render(out, footer, soup(html))
    return ''.join(out), footer


def parser_for(html):
    return lambda source: soup(html)


def test_intro_scenario():
    html = '<h1>Intro</h1><p>See <a href="/Wiki">Wiki</a>.</p>'
    body, footer = render_body(html)
    assert body == '\n# Intro\n' + '\n\nSee Wiki.\n\n=> /Wiki Wiki\n'
    assert len(footer) == 0


def test_convert_appends_final_flush():
    html = '<h1>Intro</h1><p>See <a href="/Wiki">Wiki</a>.</p>'
    assert convert('ignored', parser_for(html)) == '\n# Intro\n\n\nSee Wiki.\n\n=> /Wiki Wiki\n\n'


def test_parse_error_message():
    def parse(source):
        raise ParseError('unexpected token')

    assert convert('{{broken', parse) == 'could not parse: unexpected token'


def test_no_document_root():
    assert convert('text', lambda source: None) == 'Could not render page'


def test_parser_gets_trailing_newline():
    seen = []

    def parse(source):
        seen.append(source)
        return soup('')

    convert('abc', parse)
    convert('', parse)
    assert seen == ['abc\n', '\n']


def test_links_flushed_before_heading():
    body, _ = render_body('<li>see <a href="Target">Target</a></li><h2>Next</h2>')
    assert body == '* see Target\n\n=> Target Target\n## Next\n'
    assert body.index('=> Target') < body.index('## Next')


def test_links_flushed_at_end_of_document():
    result = convert('', parser_for('<li><a href="End">End</a></li>'))
    assert result == '* End\n\n=> End End\n'
    assert result.count('=> End End') == 1


def test_empty_paragraph_renders_nothing():
    tree = soup('<p></p>')
    tree.p.append(NavigableString(''))
    out = []
    render(out, Footer(), tree)
    assert ''.join(out) == ''


def test_paragraph_without_children_renders_nothing():
    body, _ = render_body('<p></p>')
    assert body == ''


def test_unknown_tags_drop_subtree():
    body, footer = render_body('<div><p>hidden <a href="x">link</a></p></div><table><tr><td>cell</td></tr></table>')
    assert body == ''
    assert len(footer) == 0


def test_ref_pair_is_skipped():
    body, _ = render_body('A<ref></ref>B<ref></ref>C')
    assert body == 'AC'


def test_unterminated_ref_ends_chain():
    body, _ = render_body('A<ref></ref>B<p>never</p>')
    assert body == 'A'


def test_heading_levels_collapse_after_three():
    body, _ = render_body('<h1>One</h1><h2>Two</h2><h3>Three</h3><h4>Four</h4><h6>Six</h6>')
    assert body.split('\n') == [
        '', '# One', '', '## Two', '', '### Three', '', '### Four', '', '### Six', '',
    ]


def test_heading_uses_flattened_text():
    body, footer = render_body('<h2>Early <a href="Life">life</a><ref>1</ref></h2>')
    assert body == '\n## Early life1\n'
    assert len(footer) == 0


def test_text_newlines_removed_without_space():
    body, _ = render_body('<p>line\nbreak</p>')
    assert body == '\n\nlinebreak\n\n'


def test_list_items():
    body, _ = render_body('<li>  first </li><li>.</li><li>   </li><li>second</li>')
    assert body == '* first\n* second\n'


def test_list_item_links_wait_for_outer_flush():
    body, footer = render_body('<li><a href="A">A</a></li><li><a href="B">B</a></li>')
    assert body == '* A\n* B\n'
    assert footer.flush() == '\n=> A A\n=> B B\n'


def test_anchor_without_href_is_transparent():
    body, footer = render_body('<p><a name="top">plain <i>dropped</i> kept</a></p>')
    assert body == '\n\nplain  kept\n\n'
    assert len(footer) == 0


def test_anchor_text_ignores_markup():
    body, _ = render_body('<p><a href="X"><i>It</i>al<b>ic</b></a></p>')
    assert body == '\n\nItalic\n\n=> X Italic\n'


def test_bold_emits_single_marker():
    body, _ = render_body('<p><b>Bold</b> text</p>')
    assert body == '\n\n* text\n\n'


def test_comments_and_doctype_are_silent():
    body, _ = render_body('<!DOCTYPE html><!-- note -->text')
    assert body == 'text'


def test_unrecognized_node_kind_reports_unknown():
    tree = soup('before')
    tree.append(CData('raw'))
    out = []
    render(out, Footer(), tree)
    assert ''.join(out) == 'beforeunknown\n'


def test_get_text_flattens_descendants():
    tree = soup('<div>a\nb<span>c<ref>d</ref></span><!-- e --></div>')
    assert get_text(tree.div) == 'abcd'


def test_footer_flush_escapes_targets():
    footer = Footer()
    footer.add_link('Café', 'Café au lait')
    footer.add_link('Q', 'What?#x')
    footer.add_link('Path', '/wiki/A:B')
    assert footer.flush() == (
        '\n'
        '=> Caf%C3%A9%20au%20lait Café\n'
        '=> What%3F%23x Q\n'
        '=> /wiki/A:B Path\n'
    )


def test_footer_keeps_duplicates():
    footer = Footer()
    footer.add_link('A', 'a')
    footer.add_link('A', 'a')
    assert footer.flush() == '\n=> a A\n=> a A\n'


def test_footer_flush_is_idempotent():
    footer = Footer()
    footer.add_link('Wiki', '/Wiki')
    assert footer.flush() == '\n=> /Wiki Wiki\n'
    assert footer.flush() == '\n'


def test_footer_reset():
    footer = Footer()
    footer.add_link('Wiki', '/Wiki')
    footer.reset()
    assert len(footer) == 0
    assert footer.flush() == '\n'
