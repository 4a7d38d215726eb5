# commands.py

import click
from flask import current_app
from flask.cli import with_appcontext


@click.command('seed-default-campaign')
@with_appcontext
def seed_default_campaign():
    """Create the default campaign if it is missing"""
    campaign = current_app.services.get('campaign').ensure_default_campaign()
    click.echo(f'Default campaign ready: {campaign.slug} ({campaign.id})')


@click.command('referral-stats')
@click.option('--campaign-id', default=None, help='Limit counts to one campaign')
@with_appcontext
def referral_stats(campaign_id):
    """Print referral counts per status"""
    stats = current_app.services.get('referral').get_stats(campaign_id=campaign_id)

    scope = f'campaign {campaign_id}' if campaign_id else 'all campaigns'
    click.echo(f'Referrals for {scope}:')
    for status, count in stats.items():
        click.echo(f'  {status:<14}{count}')


def init_app(app):
    """Register commands with the Flask app"""
    app.cli.add_command(seed_default_campaign)
    app.cli.add_command(referral_stats)
