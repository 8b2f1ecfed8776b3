from flask import Flask, request, jsonify
from typing import Any
import logging
from config_manager import get_config
from scraper import HiAnimeScraper

__version__ = "1.0.0"

# Get configuration
config = get_config()

# Konfiguriere Logging
level_name = str(config.get('logging.level', 'INFO')).upper()
logging_level = getattr(logging, level_name, logging.INFO)
logging.basicConfig(
    level=logging_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
app.json.sort_keys = False

scraper = HiAnimeScraper(config)

ENDPOINTS = {
    'health': '/health',
    'servers': '/api/servers?id={episodeId}',
    'stream': '/api/stream?id={episodeId}&type={sub|dub}&server={serverName}',
    'episodes': '/api/episodes/{animeId}',
    'search': '/api/search?keyword={keyword}&page={page}',
    'suggestion': '/api/suggestion?keyword={keyword}',
}


def _as_bool(value):
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 't', 'yes', 'on')


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def success(data: Any, status: int = 200):
    if hasattr(data, 'to_dict'):
        data = data.to_dict()
    return jsonify({'success': True, 'data': data}), status


def error(message: str, status: int):
    return jsonify({'success': False, 'error': message}), status


@app.after_request
def add_cors_headers(response):
    if _as_bool(config.get('server.enable_cors', True)):
        response.headers['Access-Control-Allow-Origin'] = '*'
        response.headers['Access-Control-Allow-Methods'] = 'GET, OPTIONS'
        response.headers['Access-Control-Allow-Headers'] = 'Content-Type'
    return response


@app.errorhandler(404)
def not_found(_e):
    return error('endpoint not found', 404)


@app.get('/')
@app.get('/api')
def index():
    return success({
        'name': 'HiAnime Scraper API',
        'version': __version__,
        'endpoints': ENDPOINTS,
    })


@app.get('/health')
@app.get('/api/health')
def health():
    return success({'status': 'ok', 'version': __version__})


@app.get('/api/servers')
def servers():
    episode_id = request.args.get('id', '').strip()
    if not episode_id:
        return error('episode id is required', 400)

    try:
        result = scraper.servers(episode_id)
        return success(result)
    except Exception as e:
        logger.error(f"Fehler beim Laden der Server für {episode_id}: {str(e)}", exc_info=True)
        return error(str(e), 500)


@app.get('/api/stream')
def stream():
    episode_id = request.args.get('id', '').strip()
    if not episode_id:
        return error('episode id is required', 400)
    server_type = request.args.get('type', '').strip() or 'sub'
    server_name = request.args.get('server', '').strip() or 'HD-1'

    logger.info(f"🔍 Resolving stream for {episode_id} ({server_type}/{server_name})")
    try:
        result = scraper.stream_links(episode_id, server_type, server_name)
        logger.info(f"✅ Stream resolved for {episode_id}")
        return success(result)
    except Exception as e:
        logger.error(f"❌ Fehler beim Auflösen des Streams für {episode_id}: {str(e)}", exc_info=True)
        return error(str(e), 500)


@app.get('/api/episodes/<anime_id>')
def episodes(anime_id: str):
    try:
        return success(scraper.episodes(anime_id))
    except Exception as e:
        logger.error(f"Fehler beim Laden der Episoden für {anime_id}: {str(e)}", exc_info=True)
        return error(str(e), 500)


@app.get('/api/search')
def search():
    keyword = request.args.get('keyword', '').strip()
    if not keyword:
        return error('keyword is required', 400)
    page = _as_int(request.args.get('page'), 1)

    try:
        return success(scraper.search(keyword, page))
    except Exception as e:
        logger.error(f"Fehler bei der Suche nach '{keyword}': {str(e)}", exc_info=True)
        return error(str(e), 500)


@app.get('/api/suggestion')
def suggestion():
    keyword = request.args.get('keyword', '').strip()
    if not keyword:
        return error('keyword is required', 400)

    try:
        return success(scraper.suggestions(keyword))
    except Exception as e:
        logger.error(f"Fehler beim Laden der Vorschläge für '{keyword}': {str(e)}", exc_info=True)
        return error(str(e), 500)


def run(host=None, port=None, debug=None):
    host = host or config.get('server.host', '0.0.0.0')
    port = int(port or config.get('server.port', 3030))
    debug = _as_bool(config.get('server.debug', False)) if debug is None else debug

    logger.info(f"Starting server on {host}:{port} (debug={debug})")
    app.run(host=host, port=port, debug=debug, use_reloader=False)


if __name__ == '__main__':
    run()
