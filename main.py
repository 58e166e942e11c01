import asyncio
import logging
from threading import Thread

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from features import config
from features.catalog_service import CatalogService
from features.errors import ExhaustedStrategies, UnknownResource
from features.interceptor import StreamInterceptor, is_direct_transport_stream, to_m3u8_url
from features.models import Status
from features.stream_validator import probe_stream

# Configure logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

MANIFEST_TYPE = 'application/vnd.apple.mpegurl'
SEGMENT_TYPE = 'video/mp2t'
KEY_TYPE = 'application/octet-stream'


def create_app(interceptor=None, catalogs=None):
    """Build the Flask app around one interceptor and one catalog service."""
    interceptor = interceptor or StreamInterceptor()
    catalogs = catalogs or CatalogService(interceptor.fetcher)
    base = interceptor.proxy_base

    app = Flask(__name__)
    CORS(app)
    app.extensions['stream_interceptor'] = interceptor
    app.extensions['catalog_service'] = catalogs

    # stream interception routes

    @app.route(f'{base}/register')
    def register_stream():
        """Hand out a manifest path for a real stream url."""
        url = request.args.get('url', '').strip()
        if not url:
            return jsonify({'error': 'Missing url'}), 400
        result = interceptor.register(url)
        response = jsonify(result)
        response.headers['Cache-Control'] = 'no-cache'
        return response

    @app.route(f'{base}/manifest/<handle_id>')
    async def manifest(handle_id):
        try:
            content = await interceptor.resolve_manifest(handle_id)
        except UnknownResource:
            return Response('Stream not found', status=404)
        except ExhaustedStrategies as e:
            logging.error(f"Manifest {handle_id} unavailable: {e}")
            return Response('Failed to fetch stream', status=502)
        return Response(content, mimetype=MANIFEST_TYPE, headers={'Cache-Control': 'no-cache'})

    @app.route(f'{base}/segment/<handle_id>')
    async def segment(handle_id):
        try:
            data = await interceptor.resolve_segment(handle_id)
        except UnknownResource:
            return Response('Segment not found', status=404)
        except ExhaustedStrategies:
            return Response('Failed to fetch segment', status=502)
        return Response(data, mimetype=SEGMENT_TYPE, headers={'Cache-Control': 'public, max-age=3600'})

    @app.route(f'{base}/key/<handle_id>')
    async def key(handle_id):
        try:
            data = await interceptor.resolve_key(handle_id)
        except UnknownResource:
            return Response('Key not found', status=404)
        except ExhaustedStrategies:
            return Response('Failed to fetch key', status=502)
        return Response(data, mimetype=KEY_TYPE, headers={'Cache-Control': 'public, max-age=3600'})

    # catalog routes

    @app.route('/api/channels')
    async def get_channels():
        """Return the channel catalog, optionally narrowed to one category."""
        catalog = await catalogs.get_catalog()
        category = request.args.get('category')
        payload = catalog.to_dict()
        if category:
            channels = await catalogs.channels(category)
            payload['channels'] = [ch.to_dict() for ch in channels]
            payload['count'] = len(channels)
        return jsonify(payload)

    @app.route('/api/channels/search')
    async def search_channels():
        """Search for channels by name, description or category."""
        query = request.args.get('query', '').strip()
        if not query:
            return jsonify([])
        return jsonify([ch.to_dict() for ch in await catalogs.search(query)])

    @app.route('/api/channels/<int:channel_id>/probe')
    async def probe_channel(channel_id):
        channel = await catalogs.find(channel_id)
        if channel is None:
            return jsonify({'error': 'Channel not found'}), 404
        stream_url = to_m3u8_url(channel.stream_url)
        if is_direct_transport_stream(stream_url):
            # an endless .ts body cannot be probed, it is played through a synthetic playlist
            live = channel.status is Status.LIVE
        else:
            live = await probe_stream(interceptor.fetcher, stream_url)
        return jsonify({'id': channel_id, 'status': 'live' if live else 'offline'})

    @app.route('/api/categories')
    async def get_categories():
        return jsonify(await catalogs.categories())

    @app.route('/api/stats')
    async def get_stats():
        return jsonify(await catalogs.stats())

    return app


async def start_periodic_refresh(catalogs):
    """Rebuild the catalog every CATALOG_REFRESH_INTERVAL seconds."""
    while True:
        try:
            await catalogs.refresh()
        except Exception as e:
            logging.error(f"Error during catalog refresh: {e}")
        await asyncio.sleep(config.CATALOG_REFRESH_INTERVAL)


def run_flask(app):
    app.run(host=config.HOST, port=config.PORT, use_reloader=False)


"""make sure flask server runs first and then keep the catalog warm"""
if __name__ == '__main__':
    app = create_app()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # start flask in seperate thread so it doesnt block the loop
    flask_thread = Thread(target=run_flask, args=(app,), daemon=True)
    flask_thread.start()

    loop.create_task(start_periodic_refresh(app.extensions['catalog_service']))

    try:
        loop.run_forever()
    except KeyboardInterrupt:
        logging.info('shutting down')
    finally:
        loop.close()
