"""
SnapR Prepare Function
======================
Prepares a listing's photos: analyze, plan, enhance, verify.

Event fields:
- listing_id, photos ([{'id', 'ref'}]): required
- client_id: decrypts *_encrypted credential fields when present
- callback_webhook, notification_level, job_id, correlation_id
- safety: optional SafetyOverrides for this run (conservative_mode,
  disabled_tools, cost_cap, max_enhancements_per_listing)
"""

import json
import logging
import os
import uuid
from typing import Any, Dict, List, Tuple

from listing_engine import (
    BatchExecutor,
    ENGINE_VERSION,
    EngineConfig,
    ListingPipeline,
    ListingStatus,
    PhotoAnalyzer,
    QualityValidator,
    RateLimiter,
)
from listing_engine.config import decrypt_credentials, mask_credentials
from listing_engine.config.settings import SafetyOverrides
from listing_engine.models import ListingResult
from listing_engine.notifications import create_notifier_from_event
from listing_engine.providers import EnhancementFactory, OpenAIVisionBackend, StorageFactory
from listing_engine.utils import build_output_key, get_file_extension, sanitize_filename_prefix

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger('snapr.prepare')

# Function version
VERSION = f"1.0.0-prepare-snapr-{ENGINE_VERSION}"


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(body),
    }


def _parse_event(event: Dict[str, Any]) -> Dict[str, Any]:
    if 'listing_id' in event or 'photos' in event:
        return event
    body = event.get('body')
    if not body:
        return {}
    if isinstance(body, str):
        return json.loads(body)
    return body


def _validate_photos(photos: Any) -> List[str]:
    if not isinstance(photos, list):
        return ["photos must be a list"]
    errors = []
    for index, photo in enumerate(photos):
        if not isinstance(photo, dict) or not photo.get('id') or not (photo.get('ref') or photo.get('url')):
            errors.append(f"photos[{index}] needs an id and a ref")
    return errors


def _build_config(event_data: Dict[str, Any]) -> EngineConfig:
    config = EngineConfig.from_env()
    overrides = event_data.get('safety')
    if overrides:
        safety = SafetyOverrides.model_validate({**config.safety.model_dump(), **overrides})
        config = config.model_copy(update={'safety': safety})
    return config


def _persist_outputs(storage, result: ListingResult) -> Tuple[Dict[str, str], List[str]]:
    """Copy each enhanced photo to its final listing key."""
    saved: Dict[str, str] = {}
    errors: List[str] = []

    for photo in result.succeeded:
        if not photo.final_ref or photo.final_ref == photo.original_ref:
            continue
        key = build_output_key(
            result.listing_id,
            photo.photo_id,
            'final',
            get_file_extension(photo.original_ref) or '.jpg',
        )
        try:
            saved[photo.photo_id] = storage.write(storage.read(photo.final_ref), key=key, content_type='image/jpeg')
        except (FileNotFoundError, IOError) as e:
            logger.warning("Could not save %s: %s", photo.photo_id, e)
            errors.append(f"{photo.photo_id}: {e}")

    return saved, errors


def main(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    SnapR Prepare Function

    Runs prepare_listing for one listing and stores the enhanced photos and
    the result JSON through the listing's storage provider.
    """
    correlation_id = event.get('correlation_id', str(uuid.uuid4()))
    logger.info("=== SNAPR PREPARE v%s === [ID: %s]", VERSION, correlation_id)

    job_id = None
    listing_id = None
    notifier = None

    try:
        try:
            event_data = _parse_event(event)
        except json.JSONDecodeError as e:
            return _response(400, {'status': 'job_failed', 'error': f'Invalid JSON body: {e}',
                                   'correlation_id': correlation_id})

        if not event_data:
            return _response(400, {'status': 'job_failed', 'error': 'No valid data found in event',
                                   'correlation_id': correlation_id})

        job_id = event_data.get('job_id', str(uuid.uuid4()))
        listing_id = event_data.get('listing_id')
        client_id = event_data.get('client_id')
        photos = event_data.get('photos') or []

        event_data.setdefault('correlation_id', correlation_id)
        event_data.setdefault('job_id', job_id)
        notifier = create_notifier_from_event(event_data, 'prepare', VERSION)

        if not listing_id:
            return _response(400, {'status': 'job_failed', 'error': 'Missing required fields: listing_id',
                                   'correlation_id': correlation_id})
        if not photos:
            return _response(400, {'status': 'job_failed', 'error': 'No photos found in payload',
                                   'listing_id': listing_id, 'correlation_id': correlation_id})

        photo_errors = _validate_photos(photos)
        if photo_errors:
            return _response(400, {'status': 'job_failed', 'error': '; '.join(photo_errors),
                                   'listing_id': listing_id, 'correlation_id': correlation_id})

        logger.info("Job: %s, Listing: %s, Photos: %d", job_id, listing_id, len(photos))

        # =====================================================================
        # CREDENTIALS AND CONFIGURATION
        # =====================================================================
        try:
            credentials = decrypt_credentials(event_data, client_id) if client_id else dict(event_data)
            config = _build_config(event_data)
        except ValueError as e:
            notifier.send_error('credentials_invalid', str(e))
            return _response(400, {'status': 'job_failed', 'error': str(e),
                                   'listing_id': listing_id, 'correlation_id': correlation_id})

        logger.debug("Credentials: %s", mask_credentials(credentials))

        openai_key = credentials.get('openai_api_key')
        if not openai_key:
            return _response(400, {'status': 'job_failed', 'error': 'Missing openai_api_key',
                                   'listing_id': listing_id, 'correlation_id': correlation_id})

        # =====================================================================
        # CREATE PROVIDERS
        # =====================================================================
        try:
            storage = StorageFactory.create_from_credentials(credentials)
        except (ConnectionError, ValueError) as e:
            error_msg = f"Storage connection failed: {e}"
            notifier.send_error('storage_connection_failed', error_msg)
            return _response(500, {'status': 'job_failed', 'error': error_msg,
                                   'listing_id': listing_id, 'correlation_id': correlation_id})

        registry = EnhancementFactory.build_registry(
            credentials, storage,
            poll_interval=config.execution.poll_interval_seconds,
        )
        vision = OpenAIVisionBackend(openai_key, storage=storage)

        pipeline = ListingPipeline(
            PhotoAnalyzer(vision, concurrency=config.execution.analysis_concurrency),
            BatchExecutor(registry, rate_limiter=RateLimiter.from_env(), settings=config.execution),
            storage=storage,
            config=config,
            validator=QualityValidator(storage=storage, inspector=vision, settings=config.validation),
        )
        pipeline.progress.subscribe(notifier.send_progress)
        notifier.send_debug('listing_started', {
            'storage_provider': storage.get_provider_type(),
            'enhancement_providers': [p.value for p in registry],
            'photos_count': len(photos),
        })

        # =====================================================================
        # PREPARE LISTING
        # =====================================================================
        result = pipeline.prepare_listing(listing_id, photos)

        saved, save_errors = _persist_outputs(storage, result)
        if save_errors:
            result = result.model_copy(update={'errors': result.errors + save_errors})
        result_ref = pipeline.persist(
            result,
            folder=f"listings/{sanitize_filename_prefix(listing_id) or 'unknown'}",
        )

        notifier.send_listing_result(result)

        status_code = 500 if result.status == ListingStatus.FAILED else 200
        return _response(status_code, {
            'status': result.status.value,
            'job_id': job_id,
            'listing_id': listing_id,
            'confidence_score': result.confidence_score,
            'minor': result.minor,
            'hero_photo_id': result.hero_photo_id,
            'twilight_photo_id': result.twilight_photo_id,
            'outputs': saved,
            'flagged_photo_ids': result.flagged_photo_ids,
            'errors': result.errors,
            'total_cost': result.total_cost,
            'result_ref': result_ref,
            'version': VERSION,
            'correlation_id': correlation_id,
        })

    except Exception as e:
        logger.exception("Prepare function failed")
        if notifier:
            notifier.send_error('job_failed', str(e))
        return _response(500, {
            'status': 'job_failed',
            'job_id': job_id,
            'listing_id': listing_id,
            'error': str(e),
            'version': VERSION,
            'correlation_id': correlation_id,
        })
