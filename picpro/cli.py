"""Flask CLI commands for operator tasks."""
import click


def register_cli(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables (use migrations in production)."""
        from picpro.extensions import db

        db.create_all()
        click.echo("Database initialized.")

    @app.cli.command("stats")
    def stats():
        """Show order counts per status."""
        from picpro.services.order_service import get_stats

        s = get_stats()
        total = sum(s.values())
        click.echo(f"Total orders: {total}")
        for status, count in sorted(s.items()):
            click.echo(f"  {status}: {count}")

    @app.cli.command("order-status")
    @click.argument("order_id")
    def order_status(order_id):
        """Print an order with its jobs and headshot count."""
        from picpro.services import completion, order_service

        details = order_service.get_order_details(order_id)
        if not details:
            raise click.ClickException(f"Order {order_id} not found")
        order = details["order"]
        click.echo(f"{order.id}  {order.email}  {order.tier}  [{order.status}]")
        if order.training_job_id:
            click.echo(f"  training: {order.training_job_id}")
        click.echo(f"  photos: {len(details['photos'])}  headshots: {len(details['headshots'])}")
        for job in details["jobs"]:
            line = f"  {job.style:<12} {job.prediction_id}  {job.status}"
            if job.error:
                line += f"  ({job.error[:80]})"
            click.echo(line)
        progress = completion.summarize(details["jobs"])
        click.echo(
            f"  jobs: {progress['completed']} completed, {progress['failed']} failed, "
            f"{progress['pending'] + progress['processing']} open"
        )

    @app.cli.command("retry-training")
    @click.argument("order_id")
    @click.option("--temp-upload-id", default=None, help="Pre-checkout upload to train on")
    @click.option("--zip-url", default=None, help="Archive URL to train on")
    def retry_training(order_id, temp_upload_id, zip_url):
        """Dispatch training for a paid order whose first dispatch failed."""
        from picpro.services import upload_service
        from picpro.services.fulfillment import dispatch_training

        if bool(temp_upload_id) == bool(zip_url):
            raise click.UsageError("Pass exactly one of --temp-upload-id or --zip-url")

        if temp_upload_id:
            temp = upload_service.get_temp_upload(temp_upload_id)
            if temp is None:
                raise click.ClickException(f"Temp upload {temp_upload_id} not found")
            zip_url = temp.zip_url

        order = dispatch_training(order_id, zip_url)
        if order is None:
            raise click.ClickException(
                f"Order {order_id} is not eligible for training (see log)"
            )
        if temp_upload_id:
            upload_service.delete_temp_upload(temp_upload_id)
        click.echo(f"Training started for {order.id}: {order.training_job_id}")

    @app.cli.command("cancel-job")
    @click.argument("prediction_id")
    def cancel_job(prediction_id):
        """Cancel a training or generation prediction at the provider."""
        from picpro.services.replicate_service import get_replicate

        if get_replicate().cancel_prediction(prediction_id):
            click.echo(f"Cancelled {prediction_id}")
        else:
            click.echo(f"Could not cancel {prediction_id}")

    @app.cli.command("sync-order")
    @click.argument("order_id")
    def sync_order(order_id):
        """Poll the provider for an order's open jobs and apply the results.

        Covers lost callbacks; in demo mode it drives an order from
        ``training`` to ``completed``.
        """
        from picpro.models import GenerationJob, OrderStatus
        from picpro.services import order_service
        from picpro.services.reconciler import reconcile
        from picpro.services.replicate_service import get_replicate

        order = order_service.get_order(order_id)
        if not order:
            raise click.ClickException(f"Order {order_id} not found")
        replicate = get_replicate()

        if order.status == OrderStatus.TRAINING and order.training_job_id:
            prediction = replicate.get_prediction(order.training_job_id)
            outcome = reconcile(prediction.as_callback(), order_hint=order.id)
            click.echo(f"training {prediction.id}: {prediction.status} -> {outcome.value}")
            order = order_service.get_order(order_id)

        if order.status == OrderStatus.GENERATING:
            for job in order_service.get_generation_jobs(order.id):
                if job.status not in GenerationJob.OPEN_STATUSES:
                    continue
                prediction = replicate.get_prediction(job.prediction_id)
                outcome = reconcile(prediction.as_callback(), order_hint=order.id)
                click.echo(f"{job.style} {prediction.id}: {prediction.status} -> {outcome.value}")
            order = order_service.get_order(order_id)

        click.echo(
            f"Order {order.id} is {order.status} "
            f"({order_service.count_generated_headshots(order.id)} headshots)"
        )
