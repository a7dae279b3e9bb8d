"""
Main CLI entry point for the Vehicle Report Pipeline

Provides command-line interface for running inspections, handling chain
advancement signals, recovering stale jobs and planning chunks offline.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from ..core.orchestrator import InspectionPipeline
from ..models.evidence import AssessableItem
from ..services.chunk_builder import build_chunks
from ..utils.config import PipelineConfig, load_config
from ..utils.database import DatabaseManager
from ..utils.logger import setup_logger


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True), help='Configuration file path')
@click.option('--database-url', '-d', help='Database connection URL')
@click.option('--log-level', '-l', default=None, help='Log level')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, config, database_url, log_level, verbose):
    """Vehicle Report Pipeline CLI"""

    # Ensure context object exists
    ctx.ensure_object(dict)

    try:
        settings = load_config(config)
    except Exception as e:
        click.echo(f"Invalid configuration: {str(e)}", err=True)
        sys.exit(1)

    if database_url:
        settings.database_url = database_url

    # Set up logging
    logger = setup_logger(
        level=log_level or settings.log_level,
        structured=settings.structured_logs and not verbose,
        log_file=settings.log_file
    )
    ctx.obj['logger'] = logger

    # Store configuration
    ctx.obj['settings'] = settings
    ctx.obj['verbose'] = verbose


@cli.command('init-db')
@click.pass_context
def init_db(ctx):
    """Create the pipeline tables if they do not exist"""

    async def _init():
        settings = ctx.obj['settings']
        db_manager = DatabaseManager(settings.database_url, pool_size=settings.pool_size)
        try:
            await db_manager.initialize()
            await db_manager.apply_schema()
            click.echo("Database schema applied")
        except Exception as e:
            click.echo(f"Error applying schema: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await db_manager.close()

    asyncio.run(_init())


@cli.command('run')
@click.argument('inspection_id')
@click.option('--stage', 'stages', multiple=True,
              type=click.Choice(['ownership_cost_forecast', 'fair_market_value', 'expert_advice']),
              help='Downstream stage to run (repeatable; defaults to configured stages)')
@click.pass_context
def run_inspection(ctx, inspection_id, stages):
    """Create the job chain for an inspection and run it to completion"""

    async def _run():
        pipeline = _create_pipeline(ctx)
        try:
            await pipeline.start()
            report = await pipeline.run_inspection(inspection_id, list(stages) or None)
            status = await pipeline.get_job_status(inspection_id)

            click.echo(f"Inspection {inspection_id}: {status['status']}")
            _display_job_counts(status)

            if report:
                click.echo(f"Summary: {report['summary']}")
                click.echo(f"Cost: ${report['cost']:.4f}  Tokens: {report['total_tokens']}")
                if ctx.obj['verbose']:
                    click.echo(json.dumps(report['summary_json'], indent=2, default=str))
            else:
                sys.exit(1)

        except Exception as e:
            click.echo(f"Error running inspection: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await pipeline.stop()

    asyncio.run(_run())


@cli.command('start')
@click.argument('inspection_id')
@click.option('--stage', 'stages', multiple=True,
              type=click.Choice(['ownership_cost_forecast', 'fair_market_value', 'expert_advice']),
              help='Downstream stage to run (repeatable; defaults to configured stages)')
@click.pass_context
def start_inspection(ctx, inspection_id, stages):
    """Create the job chain for an inspection without running it"""

    async def _start():
        pipeline = _create_pipeline(ctx)
        try:
            await pipeline.start()
            jobs = await pipeline.start_inspection(inspection_id, list(stages) or None)

            if not jobs:
                click.echo(f"Inspection {inspection_id} has no assessable items", err=True)
                sys.exit(1)

            click.echo(f"Created {len(jobs)} jobs for inspection {inspection_id}")
            _display_jobs_table([job.to_dict() for job in jobs])

        except Exception as e:
            click.echo(f"Error starting inspection: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await pipeline.stop()

    asyncio.run(_start())


@cli.command('advance')
@click.argument('inspection_id')
@click.argument('completed_sequence', type=int)
@click.pass_context
def advance_chain(ctx, inspection_id, completed_sequence):
    """Signal that the job at COMPLETED_SEQUENCE finished (0 starts the chain)"""

    async def _advance():
        pipeline = _create_pipeline(ctx)
        try:
            await pipeline.start()
            job = await pipeline.advance(inspection_id, completed_sequence)

            if job:
                click.echo(f"Dispatched job {job.job_id} (sequence {job.sequence_order}, {job.job_type.value})")
            else:
                click.echo("No job claimed")

            status = await pipeline.get_job_status(inspection_id)
            click.echo(f"Inspection {inspection_id}: {status['status']}")

        except Exception as e:
            click.echo(f"Error advancing chain: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await pipeline.stop()

    asyncio.run(_advance())


@cli.command('status')
@click.argument('inspection_id')
@click.pass_context
def inspection_status(ctx, inspection_id):
    """Show inspection status and its jobs"""

    async def _status():
        pipeline = _create_pipeline(ctx)
        try:
            await pipeline.start()
            status = await pipeline.get_job_status(inspection_id)

            click.echo(f"Inspection: {inspection_id}")
            click.echo(f"Status: {status['status']}")
            _display_job_counts(status)
            click.echo(f"Total Cost: ${status['total_cost']:.4f}")
            click.echo()
            _display_jobs_table(status['jobs'], ctx.obj['verbose'])

        except Exception as e:
            click.echo(f"Error getting inspection status: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await pipeline.stop()

    asyncio.run(_status())


@cli.command('job')
@click.argument('job_id')
@click.pass_context
def job_details(ctx, job_id):
    """Show a single job"""

    async def _job():
        pipeline = _create_pipeline(ctx)
        try:
            await pipeline.start()
            job = await pipeline.get_job(job_id)

            click.echo(f"Job ID: {job.job_id}")
            click.echo(f"Inspection: {job.inspection_id}")
            click.echo(f"Type: {job.job_type.value}")
            click.echo(f"Sequence: {job.sequence_order} (chunk {job.chunk_index}/{job.total_chunks})")
            click.echo(f"Status: {job.status.value}")
            click.echo(f"Cost: ${job.cost:.4f}  Tokens: {job.total_tokens}  Web searches: {job.web_search_count}")
            if job.error_message:
                click.echo(f"Error: {job.error_message}")
            if ctx.obj['verbose'] and job.chunk_result:
                click.echo(json.dumps(job.chunk_result, indent=2, default=str))

        except Exception as e:
            click.echo(f"Error getting job: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await pipeline.stop()

    asyncio.run(_job())


@cli.command('health')
@click.pass_context
def health(ctx):
    """Check database and analysis engine connectivity"""

    async def _health():
        pipeline = _create_pipeline(ctx)
        try:
            await pipeline.start()
            healthy = await pipeline.health_check()
        except Exception as e:
            click.echo(f"Error checking health: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await pipeline.stop()

        click.echo("healthy" if healthy else "unhealthy")
        if not healthy:
            sys.exit(1)

    asyncio.run(_health())


@cli.command('recover')
@click.pass_context
def recover_stale(ctx):
    """Fail jobs stuck in processing and continue their chains"""

    async def _recover():
        pipeline = _create_pipeline(ctx)
        try:
            await pipeline.start()
            recovered = await pipeline.recover_stale_jobs()

            click.echo(f"Recovered {len(recovered)} stale jobs")
            for job in recovered:
                click.echo(f"  {job.inspection_id} sequence {job.sequence_order} ({job.job_type.value})")

        except Exception as e:
            click.echo(f"Error recovering stale jobs: {str(e)}", err=True)
            sys.exit(1)
        finally:
            await pipeline.stop()

    asyncio.run(_recover())


@cli.command('plan')
@click.argument('items_file', type=click.Path(exists=True))
@click.option('--max-chunk-bytes', type=int, default=None, help='Chunk size limit in bytes')
@click.pass_context
def plan(ctx, items_file, max_chunk_bytes):
    """Show how the items in ITEMS_FILE (JSON list) would be chunked"""
    try:
        raw = json.loads(Path(items_file).read_text(encoding="utf-8"))
        items = [AssessableItem.from_dict(entry) for entry in raw]
        chunks = build_chunks(items, max_chunk_bytes or ctx.obj['settings'].max_chunk_bytes)
    except Exception as e:
        click.echo(f"Error planning chunks: {str(e)}", err=True)
        sys.exit(1)

    click.echo(f"{len(items)} items in {len(chunks)} chunks")
    for chunk in chunks:
        categories = ", ".join(dict.fromkeys(item.category for item in chunk.items))
        click.echo(f"  Chunk {chunk.chunk_index}: {len(chunk)} items, {chunk.total_size} bytes [{categories}]")


# Helper Functions
def _create_pipeline(ctx) -> InspectionPipeline:
    """Build a pipeline over the configured PostgreSQL database"""
    settings: PipelineConfig = ctx.obj['settings']
    db_manager = DatabaseManager(settings.database_url, pool_size=settings.pool_size)
    return InspectionPipeline(db_manager, config=settings)


def _display_job_counts(status: Dict[str, Any]):
    counts = status['job_counts']
    click.echo("Jobs: " + "  ".join(f"{name}={counts[name]}" for name in counts))


def _display_jobs_table(jobs: list, verbose: Optional[bool] = False):
    """Display jobs in table format"""
    if not jobs:
        click.echo("No jobs found")
        return

    # Header
    click.echo(f"{'Seq':<5} {'Type':<25} {'Chunk':<8} {'Status':<12} {'Job ID':<38}")
    click.echo("-" * 90)

    # Rows
    for job in jobs:
        chunk = f"{job['chunk_index']}/{job['total_chunks']}"
        click.echo(f"{job['sequence_order']:<5} {job['job_type']:<25} {chunk:<8} "
                   f"{job['status']:<12} {job['job_id']:<38}")
        if verbose and job.get('error_message'):
            click.echo(f"      error: {job['error_message']}")


def main():
    """Main CLI entry point"""
    cli()


if __name__ == '__main__':
    main()
