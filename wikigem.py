import os
import time
import logging
from logging.handlers import RotatingFileHandler
from urllib.parse import quote
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask import Flask, Response, request, redirect
from dotenv import load_dotenv
import requests

import gemtext
from mediawiki import LANGUAGES, ClientCache, PageNotFound, BadLanguage


load_dotenv()


MAX_QUERY_LENGTH = 500
MAX_TITLE_LENGTH = 500


LOG_DIR = os.environ.get('WIKIGEM_LOG_DIR', '/var/log/wikigem')
RATELIMIT_ENABLED = os.environ.get('RATELIMIT_ENABLED', 'true').lower() == 'true'


GEMINI_MIMETYPE = 'text/gemini; charset=utf-8'


POPULAR = [
    'Computer', 'Internet', 'World_Wide_Web', 'Gopher_(protocol)',
    'Project_Gemini', 'Hypertext',
]


HOME_TEMPLATE = '''# Wikipedia over Gemini

Wikipedia articles converted to gemtext.

=> /en/ Search English Wikipedia

## Other languages
{languages}

## Popular articles
{popular}

Content is sourced from Wikipedia under CC BY-SA 4.0.
'''


SEARCH_TEMPLATE = '''# Search: {query}

{results}
=> /{lang}/ New search
=> / Home
'''


SHOW_TEMPLATE = '''# {title}
{body}
=> {source_url} Source: Wikipedia, CC BY-SA 4.0
=> /{lang}/ Search
'''


ERROR_TEMPLATE = '''# Error

{message}

=> / Home
'''


if not os.path.exists(LOG_DIR):
    os.makedirs(LOG_DIR)

file_handler = RotatingFileHandler(
    f'{LOG_DIR}/access.log',
    maxBytes=1024*1024,
    backupCount=5
)
file_handler.setFormatter(logging.Formatter('%(asctime)s - %(message)s'))
file_handler.setLevel(logging.INFO)
access_logger = logging.getLogger('wikigem.access')
access_logger.setLevel(logging.INFO)
access_logger.addHandler(file_handler)

app = Flask(__name__)
app.config['RATELIMIT_ENABLED'] = RATELIMIT_ENABLED

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1 per second"]
)
limiter.init_app(app)

clients = ClientCache()
# preload main client
clients.get('en')


def gemini(body, status=200):
    return Response(body, status=status, mimetype=GEMINI_MIMETYPE)


def render_error(message, status):
    return gemini(ERROR_TEMPLATE.format(message=message), status)


def article_link(lang, path, text):
    return f'=> /{lang}/{quote(path, safe="")} {text}'


@app.route('/')
def home():
    languages = '\n'.join(f'=> /{lang}/ {lang}' for lang in LANGUAGES if lang != 'en')
    popular = '\n'.join(article_link('en', p, p.replace('_', ' ')) for p in POPULAR)
    return gemini(HOME_TEMPLATE.format(languages=languages, popular=popular))


@app.route('/search')
def old_search():
    # redirect old search path
    return redirect('/en/', code=301)


@app.route('/robots.txt')
def robots():
    # otherwise crawler index would explode, also unnecessary traffic
    lines = ['User-agent: *', 'Disallow: /search']
    lines += [f'Disallow: /{lang}' for lang in LANGUAGES]
    return Response('\n'.join(lines), mimetype='text/plain')


@app.route('/<lang>/')
def search(lang):
    try:
        wp = clients.get(lang)
    except BadLanguage as e:
        return render_error(str(e), 400)

    query = request.args.get('q', '').strip()
    if not query:
        return render_error('Enter search query', 400)

    if len(query) > MAX_QUERY_LENGTH:
        query = query[:MAX_QUERY_LENGTH]

    try:
        results = wp.search(query)
    except requests.RequestException as e:
        app.logger.warning(f'Wikipedia search failed: {e}')
        return render_error('Search failed. Please try again.', 502)

    if results:
        lines = '\n'.join(article_link(wp.lang, r.path, r.name) for r in results)
    else:
        lines = 'No results found.'

    return gemini(SEARCH_TEMPLATE.format(query=query, results=lines + '\n', lang=wp.lang))


@app.route('/<lang>/<path:title>')
def show(lang, title):
    if len(title) > MAX_TITLE_LENGTH:
        return render_error('Article title too long', 400)

    try:
        wp = clients.get(lang)
    except BadLanguage as e:
        return render_error(str(e), 400)

    try:
        source = wp.get_page(title)
    except PageNotFound as e:
        return render_error(str(e), 404)
    except requests.RequestException as e:
        app.logger.error(f'Could not fetch article {title}: {e}')
        return render_error('Could not fetch article. Please try again.', 502)

    started = time.monotonic()
    body = gemtext.convert(source, wp.parse)
    app.logger.debug(f'Converted {lang}/{title} in {time.monotonic() - started:.3f}s')

    return gemini(SHOW_TEMPLATE.format(
        title=title.replace('_', ' '),
        body=body,
        source_url=wp.article_url(title),
        lang=wp.lang,
    ))


@app.after_request
def log_response(response):
    access_logger.info(f'{request.remote_addr} - {request.method} {request.path} - {response.status_code}')
    return response


@app.after_request
def add_security_headers(response):
    response.headers['X-Content-Type-Options'] = 'nosniff'
    return response


if __name__ == '__main__':
    debug = os.environ.get('DEBUG', 'false').lower() == 'true'
    port = int(os.environ.get('PORT', '8080'))
    app.run(host='0.0.0.0', port=port, debug=debug)
