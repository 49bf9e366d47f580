"""
tarot_recog/cli/main.py: CLI entry point using Click

Commands:
- init-db - Create database tables
- seed [--deck-json deck.json] - Load the card catalog
- recognize IMAGE... | --dir /path/to/photos --out results.csv
- train IMAGE --card-id 10 - Teach the system a confirmed identification
- stats - Learned association counts
- match-text "9. THE HERMIT" - Debug the text matcher
- serve - Run the HTTP API
"""

import click
from pathlib import Path
from datetime import datetime
import csv
import json
import logging

from tarot_recog.config import LOG_FORMAT, LOG_LEVEL, JOBS_DIR

# Setup logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format=LOG_FORMAT
)
logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.bmp'}

RESULT_FIELDS = ['image_path', 'card_id', 'card_name', 'confidence', 'method', 'processing_time', 'status']


def _split_names(value):
    if value is None:
        return None
    return [name.strip() for name in value.split(',') if name.strip()]


def _load_recognizer(extractors=None, deadline=None):
    from tarot_recog.config import RECOGNITION_DEADLINE
    from tarot_recog.database.schema import init_db
    from tarot_recog.errors import TarotRecognitionError
    from tarot_recog.recognition.recognizer import create_recognizer

    init_db()
    try:
        return create_recognizer(
            extractor_names=_split_names(extractors),
            deadline=deadline if deadline is not None else RECOGNITION_DEADLINE
        )
    except TarotRecognitionError as e:
        raise click.ClickException(f"{e} (run `seed` to load the catalog)")
    except ValueError as e:
        raise click.ClickException(str(e))


@click.group()
def cli():
    """Tarot Card Recognition System CLI"""
    pass


@cli.command('init-db')
def init_db_command():
    """Create database tables."""
    from tarot_recog.config import DATABASE_PATH
    from tarot_recog.database.schema import init_db

    init_db()
    logger.info(f"Database initialized at {DATABASE_PATH}")


@cli.command()
@click.option('--deck-json', type=click.Path(exists=True), help='Custom deck JSON (default: Rider-Waite-Smith)')
def seed(deck_json):
    """
    Load the card catalog into the database

    Example: seed --deck-json my_deck.json

    Cards whose id already exists are left untouched.
    """
    from tarot_recog.catalog.provider import load_deck_json, standard_deck
    from tarot_recog.database.db import count_cards, create_cards
    from tarot_recog.database.schema import SessionLocal, init_db

    init_db()
    cards = load_deck_json(deck_json) if deck_json else standard_deck()
    if not cards:
        raise click.ClickException("Deck contains no cards")

    db = SessionLocal()
    try:
        inserted = create_cards(db, cards)
        total = count_cards(db)
    finally:
        db.close()

    logger.info(f"Inserted {inserted} cards ({total} in catalog)")


def _collect_images(images, image_dir):
    paths = [Path(p) for p in images]
    if image_dir:
        dir_path = Path(image_dir)
        for ext in IMAGE_EXTENSIONS:
            paths.extend(dir_path.glob(f'*{ext}'))
            paths.extend(dir_path.glob(f'*{ext.upper()}'))
    # Case-insensitive filesystems return the same file for both globs
    return sorted(set(paths))


@cli.command()
@click.argument('images', nargs=-1, type=click.Path(exists=True, dir_okay=False))
@click.option('--dir', 'image_dir', type=click.Path(exists=True, file_okay=False), help='Directory of card photos')
@click.option('--out', 'output_csv', type=click.Path(), help='Output CSV path for results')
@click.option('--extractors', help='Comma-separated extractors (default: ENABLED_EXTRACTORS)')
@click.option('--deadline', type=float, help='Per-image deadline in seconds')
@click.option('--debug', is_flag=True, help='Print full provenance for each image')
def recognize(images, image_dir, output_csv, extractors, deadline, debug):
    """
    Recognize card photos

    Example: recognize --dir photos/ --out results.csv

    With a single image and no --out, prints the result as JSON.
    """
    from tqdm import tqdm

    image_paths = _collect_images(images, image_dir)
    if not image_paths:
        raise click.ClickException("No images given (pass IMAGE arguments or --dir)")

    recognizer = _load_recognizer(extractors, deadline)

    if len(image_paths) == 1 and not output_csv:
        try:
            result = recognizer.recognize_sync(image_paths[0].read_bytes())
        finally:
            recognizer.close()
        click.echo(result.to_json())
        return

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    job_dir = JOBS_DIR / f"recognize_{timestamp}"
    job_dir.mkdir(parents=True, exist_ok=True)

    logger.info(f"Found {len(image_paths)} images to process")

    results = []
    start_time = datetime.now()

    try:
        for img_path in tqdm(image_paths, desc="Recognizing cards"):
            try:
                result = recognizer.recognize_sync(img_path.read_bytes())
            except OSError as e:
                logger.error(f"Error reading {img_path}: {e}")
                results.append({
                    'image_path': str(img_path),
                    'card_id': None,
                    'card_name': None,
                    'confidence': 0.0,
                    'method': None,
                    'processing_time': 0.0,
                    'status': 'error'
                })
                continue

            if debug:
                click.echo(result.to_json())

            results.append({
                'image_path': str(img_path),
                'card_id': result.card.id if result.card else None,
                'card_name': result.card.name if result.card else None,
                'confidence': round(result.confidence, 4),
                'method': result.method,
                'processing_time': round(result.processing_time, 3),
                'status': 'matched' if result.card else 'no_match'
            })
    finally:
        recognizer.close()

    duration = (datetime.now() - start_time).total_seconds()

    output_path = Path(output_csv) if output_csv else job_dir / "results.csv"
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=RESULT_FIELDS)
        writer.writeheader()
        writer.writerows(results)

    num_matched = sum(1 for r in results if r['status'] == 'matched')
    methods = {}
    for r in results:
        if r['method']:
            methods[r['method']] = methods.get(r['method'], 0) + 1

    metrics = {
        'job_id': job_dir.name,
        'total_images': len(image_paths),
        'num_matched': num_matched,
        'match_rate': num_matched / len(results) if results else 0.0,
        'methods': methods,
        'avg_time_per_image': duration / len(results) if results else 0,
        'total_duration_seconds': duration,
        'timestamp': timestamp,
        'output_csv': str(output_path)
    }

    metrics_path = job_dir / "metrics.json"
    with open(metrics_path, 'w') as f:
        json.dump(metrics, f, indent=2)

    logger.info(f"Recognition completed: {num_matched}/{len(results)} matched")
    logger.info(f"Results: {output_path}")
    logger.info(f"Metrics: {metrics_path}")


@cli.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False))
@click.option('--card-id', type=int, required=True, help='Confirmed card id')
def train(image, card_id):
    """
    Teach the system a confirmed identification

    Example: train photo.jpg --card-id 10
    """
    from tarot_recog.errors import TarotRecognitionError

    recognizer = _load_recognizer(extractors='')
    try:
        association = recognizer.train_card(Path(image).read_bytes(), card_id)
    except TarotRecognitionError as e:
        raise click.ClickException(str(e))
    finally:
        recognizer.close()

    card = recognizer.index.get(card_id)
    logger.info(f"Trained {image} as {card.name} (signature {association.signature})")


@cli.command()
def stats():
    """Show learned association counts."""
    recognizer = _load_recognizer(extractors='')
    try:
        click.echo(json.dumps(recognizer.stats(), indent=2))
    finally:
        recognizer.close()


@cli.command('match-text')
@click.argument('text')
@click.option('--deck-json', type=click.Path(exists=True), help='Match against a deck file instead of the database')
def match_text(text, deck_json):
    """
    Match text to a card without any image

    Example: match-text "9. THE HERMIT"
    """
    from tarot_recog.catalog.index import CatalogIndex
    from tarot_recog.catalog.provider import load_deck_json
    from tarot_recog.recognition.name_matcher import CardNameMatcher

    if deck_json:
        matcher = CardNameMatcher(CatalogIndex(load_deck_json(deck_json)))
    else:
        recognizer = _load_recognizer(extractors='')
        recognizer.close()
        matcher = recognizer.matcher

    match = matcher.match(text)
    if match is None:
        click.echo(json.dumps({'card': None, 'confidence': 0.0, 'method': None}, indent=2))
        return

    click.echo(json.dumps({
        'card': match.card.to_dict(),
        'confidence': match.confidence,
        'method': match.method
    }, indent=2))


@cli.command()
@click.option('--host', default=None, help='Bind address (default: API_HOST)')
@click.option('--port', type=int, default=None, help='Port (default: API_PORT)')
@click.option('--reload', is_flag=True, help='Auto-reload on code changes')
def serve(host, port, reload):
    """Run the HTTP API with uvicorn."""
    import uvicorn
    from tarot_recog.config import API_HOST, API_PORT

    uvicorn.run(
        "api.main:app",
        host=host or API_HOST,
        port=port or API_PORT,
        reload=reload
    )


if __name__ == '__main__':
    cli()
