import logging
import threading
from collections import namedtuple
from urllib.parse import quote, unquote

import requests
from bs4 import BeautifulSoup

from gemtext import ParseError


logger = logging.getLogger(__name__)


API_URL = 'https://{lang}.wikipedia.org/w/api.php'
ARTICLE_URL = 'https://{lang}.wikipedia.org/wiki/{title}'

REQUEST_TIMEOUT = 10
SEARCH_LIMIT = 10

HEADERS = {
    'User-Agent': 'wikigem/1.0 (gemtext Wikipedia gateway)'
}

LANGUAGES = [
    'en', 'ar', 'de', 'es', 'fr', 'it', 'nl', 'ja', 'pl', 'pt', 'ru', 'sv',
    'uk', 'vi', 'zh', 'id', 'ms', 'bg', 'ca', 'cs', 'da', 'eo', 'eu', 'fa',
    'he', 'ko', 'hu', 'no', 'ro', 'sr', 'sh', 'fi', 'tr', 'ast', 'bs', 'et',
    'el', 'simple', 'gl', 'hr', 'lv', 'lt', 'ml', 'nn', 'sk', 'sl', 'th',
]

# wrappers whose children should reach the converter directly
UNWRAP_SELECTORS = [
    'html', 'body', 'div.mw-parser-output', 'div.mw-heading', 'ul', 'ol',
]

REMOVE_SELECTORS = [
    'head', 'style', 'script', 'sup.reference', '.mw-editsection',
]


SearchResult = namedtuple('SearchResult', ['name', 'path'])


class PageNotFound(Exception):
    pass


class BadLanguage(ValueError):
    pass


def validate_lang(lang):
    if lang not in LANGUAGES:
        raise BadLanguage(f'unsupported language: {lang}')
    return lang


def title_to_path(title):
    return title.replace(' ', '_')


def lift_nested_lists(soup):
    # deepest lists first, so each one lands right after its own item
    for sublist in reversed(soup.select('li ul, li ol')):
        item = sublist.find_parent('li')
        item.insert_after(sublist.extract())


def rewrite_links(soup, lang):
    for a in soup.find_all('a', href=True):
        href = a['href']
        if href.startswith('#') or 'redlink=1' in href:
            del a['href']
        elif href.startswith('/wiki/'):
            title = unquote(href[len('/wiki/'):].split('#', 1)[0])
            a['href'] = f'/{lang}/{title}'


def prepare_tree(soup, lang):
    """Strip MediaWiki page chrome so content nodes sit at the top level.

    Nested lists are moved after their parent item before list containers
    are unwrapped, and article links are pointed at /<lang>/<title>.
    """
    for selector in REMOVE_SELECTORS:
        for tag in soup.select(selector):
            tag.decompose()

    lift_nested_lists(soup)

    for selector in UNWRAP_SELECTORS:
        for tag in soup.select(selector):
            tag.unwrap()

    rewrite_links(soup, lang)
    return soup


class WikipediaClient:

    def __init__(self, lang, session=None):
        self.lang = validate_lang(lang)
        self.api_url = API_URL.format(lang=self.lang)
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)

    def __repr__(self):
        return f'WikipediaClient({self.lang!r})'

    def article_url(self, title):
        return ARTICLE_URL.format(lang=self.lang, title=quote(title_to_path(title)))

    def get(self, params):
        params = dict(params, format='json', formatversion='2')
        resp = self.session.get(self.api_url, params=params, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()

    def post(self, data):
        data = dict(data, format='json', formatversion='2')
        resp = self.session.post(self.api_url, data=data, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.json()

    def get_page(self, title):
        data = self.get({
            'action': 'query',
            'prop': 'revisions',
            'rvprop': 'content',
            'rvslots': 'main',
            'redirects': '1',
            'titles': title,
        })

        pages = data.get('query', {}).get('pages', [])
        if not pages:
            raise PageNotFound(f'page not found: {title}')

        page = pages[0]
        if page.get('missing') or page.get('invalid') or not page.get('revisions'):
            raise PageNotFound(f'page not found: {title}')

        return page['revisions'][0]['slots']['main']['content']

    def search(self, query):
        data = self.get({
            'action': 'opensearch',
            'search': query,
            'limit': SEARCH_LIMIT,
        })

        # opensearch returns: [query, [titles], [descriptions], [urls]]
        titles = data[1] if len(data) > 1 else []
        return [SearchResult(name=t, path=title_to_path(t)) for t in titles]

    def parse(self, source):
        try:
            data = self.post({
                'action': 'parse',
                'contentmodel': 'wikitext',
                'prop': 'text',
                'disableeditsection': '1',
                'disablelimitreport': '1',
                'text': source,
            })
        except (requests.RequestException, ValueError) as e:
            raise ParseError(str(e)) from e

        if 'error' in data:
            error = data['error']
            raise ParseError(error.get('info') or error.get('code', 'unknown error'))

        html = data.get('parse', {}).get('text')
        if html is None:
            return None

        return prepare_tree(BeautifulSoup(html, 'lxml'), self.lang)


class ClientCache:
    """Wikipedia clients by language code, created on first use."""

    def __init__(self, session=None):
        self.session = session
        self.clients = {}
        self.lock = threading.Lock()

    def get(self, lang):
        lang = validate_lang(lang)
        with self.lock:
            client = self.clients.get(lang)
            if client is None:
                logger.info(f'Creating client for {lang}')
                client = WikipediaClient(lang, session=self.session)
                self.clients[lang] = client
            return client

    def __contains__(self, lang):
        return lang in self.clients

    def __len__(self):
        return len(self.clients)
