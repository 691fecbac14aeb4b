import logging

from flask import request, jsonify, Response

from core.batch_optimizer import BulkEditProcessor, start_bulk_edit
from core.completion import get_completion_service
from core.product_db import get_product_db
from core.shopify_csv import generate_shopify_csv
from core.task_queue import get_task_queue

logger = logging.getLogger(__name__)


def setup_bulk_edit_routes(app, db=None, queue=None, processor=None, settings=None):
    if settings is None:
        from config.settings import get_settings
        settings = get_settings()
    db = db or get_product_db()
    queue = queue or get_task_queue()
    processor = processor or BulkEditProcessor(
        db,
        completion_factory=lambda: get_completion_service(settings),
        progress_every=settings.PROGRESS_REPORT_EVERY,
    )

    @app.route('/api/bulk-edit', methods=['POST'])
    def api_start_bulk_edit():
        """Start a bulk edit: one background task per batch of products"""
        data = request.get_json(silent=True) or {}
        try:
            result = start_bulk_edit(
                data.get('productIds'),
                data.get('user'),
                data.get('settings'),
                db=db,
                queue=queue,
                processor=processor,
                batch_size=settings.BATCH_SIZE,
            )
        except ValueError as e:
            logger.warning(f"❌ Invalid bulk edit request: {e}")
            return jsonify({'success': False, 'error': str(e)}), 400
        except Exception as e:
            logger.error(f"Error starting bulk edit: {e}", exc_info=True)
            return jsonify({'success': False, 'error': str(e)}), 500

        return jsonify({
            'success': True,
            'bulkeditid': result['bulkeditid'],
            'message': f"Batches created: {result['batches']}",
        })

    @app.route('/api/bulk-edit/tasks', methods=['POST'])
    def api_process_bulk_edit_batch():
        """Process one batch synchronously (for external task runners)"""
        data = request.get_json(silent=True) or {}
        if not isinstance(data.get('productIds'), list) or not (data.get('user') or {}).get('UID') \
                or not (data.get('settings') or {}).get('bulkeditid'):
            return jsonify({'success': False, 'error': 'productIds, user.UID and settings.bulkeditid are required'}), 400

        try:
            summary = processor.process_batch(data)
        except Exception as e:
            logger.error(f"Error processing bulk edit batch: {e}", exc_info=True)
            return jsonify({'success': False, 'error': str(e)}), 500

        return jsonify({'success': True, 'message': 'Batch processed', **summary})

    @app.route('/api/history/<user_id>/<bulkeditid>', methods=['GET'])
    def api_get_history(user_id, bulkeditid):
        history = db.get_history(user_id, bulkeditid)
        if not history:
            return jsonify({'success': False, 'error': f'History item {bulkeditid} not found'}), 404
        return jsonify({'success': True, 'history': history})

    @app.route('/api/bulk-edit/<bulkeditid>/export.csv', methods=['GET'])
    def api_export_bulk_edit_csv(bulkeditid):
        products = db.get_products_by_import(bulkeditid, user_id=request.args.get('user_id'))
        if not products:
            return jsonify({'success': False, 'error': f'No products for bulk edit {bulkeditid}'}), 404

        csv_text = generate_shopify_csv(products)
        return Response(
            csv_text,
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename=bulk-edit-{bulkeditid}.csv'}
        )
