#!/usr/bin/env python3
"""
Squad Picks Management CLI

This script provides command-line management functionality for the Squad Picks application.
"""

import logging
import os

# The CLI drives jobs by hand; background jobs belong to the web process
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import click  # noqa: E402
from flask.cli import with_appcontext  # noqa: E402
from sqlalchemy import text  # noqa: E402
from sqlalchemy.exc import IntegrityError, SQLAlchemyError  # noqa: E402

from squadpicks import create_app, db  # noqa: E402
from squadpicks.errors import PickError  # noqa: E402
from squadpicks.models import Game, PickSet, Squad, User  # noqa: E402
from squadpicks.models.pick_set import STATUS_DRAFT  # noqa: E402
from squadpicks.services import grading, leaderboard, locking, penalty, squads  # noqa: E402
from squadpicks.utils.timezone_utils import format_local_time, get_utc_time  # noqa: E402
from squadpicks.utils.week_window import WeekId, get_week_window  # noqa: E402

app = create_app()


class WeekIdType(click.ParamType):
    name = "week_id"

    def convert(self, value, param, ctx):
        try:
            return WeekId.parse(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


WEEK_ID = WeekIdType()


@click.group()
def cli():
    """Squad Picks Management CLI"""
    pass


# Window Commands
@cli.group()
def window():
    """Pick window commands"""
    pass


@window.command()
@with_appcontext
def show():
    """Show the current week and window state"""
    state = get_week_window().window_state(get_utc_time())

    status = "🟢 OPEN" if state.is_open else ("🔒 LOCKED" if state.is_locked else "⚪ Closed")
    click.echo(f"Week {state.week_id}: {status}")
    click.echo(f"  Opens: {format_local_time(state.opens_at)}")
    click.echo(f"  Locks: {format_local_time(state.locks_at)}")


@window.command()
@with_appcontext
def calendar():
    """List every week of the season with its open and lock times"""
    week_window = get_week_window()
    for week_id in week_window.season_week_ids():
        opens_at, locks_at = week_window.week_bounds(week_id)
        click.echo(
            f"  {str(week_id):>9}: opens {format_local_time(opens_at)}, "
            f"locks {format_local_time(locks_at)}"
        )


# Grading Commands
@cli.group()
def grade():
    """Grading commands"""
    pass


@grade.command()
@click.option("--week", type=WEEK_ID, help="Only grade this week (YYYY-WN)")
@with_appcontext
def sweep(week):
    """Grade every pick whose game is final"""
    try:
        counts = grading.sweep(week)
        click.echo(
            f"✅ Graded {counts['graded']} picks "
            f"({counts['pending']} pending, {counts['already_graded']} already graded)"
        )
    except SQLAlchemyError as e:
        db.session.rollback()
        click.echo(f"❌ Database error during grading: {str(e)}")
        logging.error(f"Grading sweep failed - SQL error: {e}")


# Pick Commands
@cli.group()
def picks():
    """Pick set commands"""
    pass


@picks.command(name="list")
@click.argument("week", type=WEEK_ID)
@with_appcontext
def list_picks(week):
    """List pick sets for a week"""
    now = get_utc_time()
    week_window = get_week_window()
    pick_sets = (
        PickSet.query.filter_by(season_year=week.year, week_number=week.number)
        .order_by(PickSet.user_id)
        .all()
    )

    if not pick_sets:
        click.echo(f"No pick sets for {week}.")
        return

    click.echo(f"Pick sets for {week}:")
    for pick_set in pick_sets:
        marker = " (penalty)" if pick_set.is_penalty else ""
        click.echo(
            f"  {pick_set.user.username}: {pick_set.effective_status(week_window, now)}{marker}"
        )
        for pick in pick_set.picks:
            outcome = pick.outcome.upper() if pick.outcome else "pending"
            click.echo(
                f"    {pick.game.team_for(pick.choice)} {pick.spread_at_pick:+g} - {outcome}"
            )


@picks.command()
@click.argument("week", type=WEEK_ID)
@with_appcontext
def lock(week):
    """Lock submitted pick sets of a week past its lock time"""
    try:
        locked = locking.lock_week(week)
        click.echo(f"✅ Locked {locked} pick sets for {week}")
    except ValueError as e:
        click.echo(f"❌ {str(e)}")


# Penalty Commands
@cli.group(name="penalty")
def penalty_cmd():
    """Penalty backfill commands"""
    pass


@penalty_cmd.command()
@click.argument("week", type=WEEK_ID)
@click.argument("username")
@with_appcontext
def user(week, username):
    """Record a user's missed week as 0-3"""
    target = User.query.filter_by(username=username).first()
    if not target:
        click.echo(f"❌ User {username} not found!")
        return

    try:
        pick_set = penalty.backfill_missing_week(target.id, week)
    except PickError as e:
        click.echo(f"❌ {e.message}")
        return

    if pick_set is None:
        click.echo(f"⚪ Nothing to backfill for {username} in {week}")
    else:
        click.echo(f"✅ Recorded 0-3 for {username} in {week}")


@penalty_cmd.command()
@click.argument("week", type=WEEK_ID)
@click.option(
    "--policy",
    type=click.Choice(penalty.ELIGIBILITY_POLICIES),
    help="Override PENALTY_ELIGIBILITY",
)
@with_appcontext
def week(week, policy):
    """Apply the penalty rule to every eligible user for a week"""
    try:
        counts = penalty.backfill_week(week, policy=policy)
        click.echo(f"✅ {week}: {counts['created']} created, {counts['skipped']} skipped")
    except PickError as e:
        click.echo(f"❌ {e.message}")
    except ValueError as e:
        click.echo(f"❌ {str(e)}")


@penalty_cmd.command(name="all")
@with_appcontext
def all_weeks():
    """Apply the penalty rule to every finished week of the season"""
    results = penalty.backfill_completed_weeks()
    if not results:
        click.echo("No finished weeks to backfill.")
        return
    for week_id, counts in results.items():
        click.echo(f"  {week_id}: {counts['created']} created, {counts['skipped']} skipped")


# Leaderboard Commands
@cli.command(name="leaderboard")
@click.option("--week", type=WEEK_ID, help="Week standings instead of season")
@click.option("--squad", "squad_name", help="Squad name")
@click.option(
    "--membership",
    type=click.Choice(leaderboard.MEMBERSHIP_MODES),
    help="Squad membership mode",
)
@with_appcontext
def show_leaderboard(week, squad_name, membership):
    """Print standings"""
    squad_id = None
    if squad_name:
        squad = Squad.query.filter_by(name=squad_name).first()
        if not squad:
            click.echo(f"❌ Squad {squad_name} not found!")
            return
        squad_id = squad.id

    if week:
        scope = leaderboard.LeaderboardScope.week(week, squad_id, membership)
    else:
        scope = leaderboard.LeaderboardScope.season(squad_id, membership)

    entries = leaderboard.aggregate(scope)
    click.echo(f"🏆 Leaderboard ({scope.describe()})")
    for entry in entries:
        click.echo(
            f"  {entry.rank:>3}. {entry.display_name:<20} "
            f"{entry.wins}-{entry.losses}-{entry.pushes}  "
            f"{entry.win_percentage:.3f}  {entry.points:g} pts"
        )


# User and Squad Commands
@cli.group(name="user")
def user_cmd():
    """User management commands"""
    pass


@user_cmd.command()
@click.argument("username")
@click.option("--display-name", help="Display name")
@with_appcontext
def create(username, display_name):
    """Create a user known to the identity provider"""
    try:
        new_user = User(username=username, display_name=display_name)
        db.session.add(new_user)
        db.session.commit()
        click.echo(f"✅ Created user {username} (id {new_user.id})")
    except IntegrityError:
        db.session.rollback()
        click.echo(f"❌ User {username} already exists!")


@user_cmd.command(name="join")
@click.argument("username")
@click.argument("squad_name")
@with_appcontext
def join_squad(username, squad_name):
    """Add a user to a squad, creating the squad if needed"""
    member = User.query.filter_by(username=username).first()
    if not member:
        click.echo(f"❌ User {username} not found!")
        return

    squads.join_squad(member.id, squad_name)
    click.echo(f"✅ {username} is a member of {squad_name}")


@user_cmd.command(name="leave")
@click.argument("username")
@click.argument("squad_name")
@with_appcontext
def leave_squad(username, squad_name):
    """Remove a user from a squad"""
    member = User.query.filter_by(username=username).first()
    squad = Squad.query.filter_by(name=squad_name).first()
    if not member or not squad:
        click.echo("❌ User or squad not found!")
        return

    if squads.leave_squad(member.id, squad):
        click.echo(f"✅ {username} left {squad_name}")
    else:
        click.echo(f"⚪ {username} is not a member of {squad_name}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command()
@with_appcontext
def init_db():
    """Create all tables"""
    db.create_all()
    click.echo("✅ Database tables created")


@db_cmd.command()
@click.confirmation_option(prompt="This drops every table. Continue?")
@with_appcontext
def reset():
    """Drop and recreate all tables"""
    db.drop_all()
    db.create_all()
    click.echo("✅ Database reset")


# Info Commands
@cli.command()
@with_appcontext
def status():
    """Show application status"""
    click.echo("🏈 Squad Picks Application Status")
    click.echo("=" * 40)

    try:
        db.session.execute(text("SELECT 1"))
        click.echo("✅ Database: Connected")
    except SQLAlchemyError as e:
        click.echo(f"❌ Database: Error - {str(e)}")
        return

    state = get_week_window().window_state(get_utc_time())
    status_text = "open" if state.is_open else ("locked" if state.is_locked else "closed")
    click.echo(f"📅 Current Week: {state.week_id} ({status_text})")

    user_count = User.query.filter_by(is_active=True).count()
    click.echo(f"👥 Active Users: {user_count}")

    squad_count = Squad.query.filter_by(is_active=True).count()
    click.echo(f"🏆 Active Squads: {squad_count}")

    week_games = Game.get_games_for_week(state.week_id)
    final_count = len([game for game in week_games if game.has_result])
    click.echo(f"🏈 Games this week: {final_count}/{len(week_games)} completed")

    submitted = PickSet.query.filter(
        PickSet.season_year == state.week_id.year,
        PickSet.week_number == state.week_id.number,
        PickSet.status != STATUS_DRAFT,
    ).count()
    click.echo(f"📝 Pick sets this week: {submitted}")


if __name__ == "__main__":
    with app.app_context():
        cli()
