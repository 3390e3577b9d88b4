"""Flask CLI commands for operating the photo pipeline."""
import click
from flask import current_app


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables (local development; production uses migrations)."""
        from photomarket.extensions import db

        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("process-photos")
    @click.option("--limit", type=int, default=None, help="Batch size override")
    def process_photos(limit):
        """Claim and process one batch of NEW photos (same as the cron trigger)."""
        from photomarket.workers.photo_processing import process_batch

        counters = process_batch(limit)
        click.echo(
            f"Processed: {counters['successful']} successful, "
            f"{counters['failed']} failed"
        )

    @app.cli.command("prune-photos")
    @click.option("--days", type=int, default=None, help="Retention window in days")
    def prune_photos(days):
        """Delete orphan photos older than the retention window."""
        from photomarket.services.prune_service import prune_orphans

        result = prune_orphans(days)
        click.echo(
            f"Pruned {result['pruned']} of {result['scanned']} orphan photo(s) "
            f"older than {result['days']} days"
        )

    @app.cli.command("create-album")
    @click.option("--id", "album_id", required=True)
    @click.option("--name", required=True)
    @click.option("--photographer", required=True)
    @click.option("--price", default=0, type=int, help="Price per photo in cents")
    def create_album(album_id, name, photographer, price):
        """Create an album directly (for testing)."""
        from photomarket.extensions import db
        from photomarket.models.album import Album

        album = Album(
            id=album_id,
            album_name=name,
            photographer_id=photographer,
            price_per_photo_cents=price,
        )
        db.session.add(album)
        db.session.commit()
        click.echo(f"Created album {album_id}: {name}")

    @app.cli.command("photo-stats")
    def photo_stats():
        """Show photo counts by processing status."""
        from photomarket.services.photo_service import status_counts

        counts = status_counts()
        in_flight = counts.pop("in_flight")
        click.echo(f"Total photos: {sum(counts.values())}")
        for status, count in sorted(counts.items()):
            click.echo(f"  {status}: {count}")
        click.echo(f"  in flight: {in_flight}")
        click.echo(f"Max attempts: {current_app.config['PHOTO_MAX_ATTEMPTS']}")
