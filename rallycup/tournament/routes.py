"""Routes for the tournament blueprint."""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request

from rallycup.championship import ChampionshipService
from rallycup.core.configuration import TournamentConfiguration
from rallycup.core.phases import get_available_transitions
from rallycup.errors import ValidationError
from rallycup.standings import StandingsService
from rallycup.utils import json_body, validate_form

from . import bp
from .forms import ActorForm, TeamForm, TournamentForm, TransitionForm
from .models import TeamRegistration, TournamentCreation
from .services import TournamentService
from .workflow import PhaseStateMachine


@bp.route("/", methods=["POST"])
def create_tournament() -> Any:
    """Create a draft tournament."""
    form = validate_form(TournamentForm())
    body = json_body()
    configuration = body.get("configuration") or {}
    if not isinstance(configuration, dict):
        raise ValidationError("Configuration must be an object.")
    configuration.setdefault(
        "defaultRankingForNonParticipants", current_app.config["DEFAULT_RATING"]
    )
    admin_ids = body.get("adminIds") or []
    if not isinstance(admin_ids, list):
        raise ValidationError("adminIds must be a list.")

    creation = TournamentCreation(
        name=form.name.data,
        owner_id=form.ownerId.data,
        configuration=TournamentConfiguration.from_dict(configuration),
        points_system=form.pointsSystem.data or "standard",
        admin_ids=[str(a) for a in admin_ids],
    )
    tournament_id = TournamentService.create_tournament(creation)
    current_app.logger.info(f"Tournament {tournament_id} created via API")
    return jsonify({"success": True, "tournamentId": tournament_id}), 201


@bp.route("/<string:tournament_id>", methods=["GET"])
def view_tournament(tournament_id: str) -> Any:
    """Return a tournament and the phases it can move to."""
    tournament = TournamentService.get_tournament(tournament_id)
    tournament["availableTransitions"] = get_available_transitions(
        tournament.get("status")
    )
    return jsonify(tournament)


@bp.route("/<string:tournament_id>/teams", methods=["GET"])
def list_teams(tournament_id: str) -> Any:
    active_only = request.args.get("active", "").lower() in ["true", "1", "t"]
    return jsonify(TournamentService.get_teams(tournament_id, active_only=active_only))


@bp.route("/<string:tournament_id>/teams", methods=["POST"])
def register_team(tournament_id: str) -> Any:
    """Register a team with its players."""
    form = validate_form(TeamForm())
    players = json_body().get("players") or []
    if not isinstance(players, list) or any(not isinstance(p, dict) for p in players):
        raise ValidationError("players must be a list of objects.")

    result = TournamentService.register_team(
        tournament_id, TeamRegistration(team_name=form.teamName.data, players=players)
    )
    return jsonify({"success": True, **result}), 201


@bp.route("/<string:tournament_id>/teams/<string:team_id>/withdraw", methods=["POST"])
def withdraw_team(tournament_id: str, team_id: str) -> Any:
    result = TournamentService.withdraw_team(tournament_id, team_id)
    return jsonify({"success": True, **result})


@bp.route("/<string:tournament_id>/teams/<string:team_id>", methods=["DELETE"])
def delete_team(tournament_id: str, team_id: str) -> Any:
    result = TournamentService.delete_team(tournament_id, team_id)
    return jsonify({"success": True, **result})


@bp.route("/<string:tournament_id>/transitions", methods=["GET"])
def available_transitions(tournament_id: str) -> Any:
    """List the phases the tournament can move to next."""
    machine = PhaseStateMachine()
    return jsonify(machine.get_available_transitions(tournament_id))


@bp.route("/<string:tournament_id>/transition", methods=["POST"])
def transition(tournament_id: str) -> Any:
    """Move the tournament to another phase."""
    form = validate_form(TransitionForm())
    machine = PhaseStateMachine()
    result = machine.transition(
        tournament_id, form.targetStatus.data, form.actorId.data
    )
    current_app.logger.info(
        f"Tournament {tournament_id} transitioned to {result['to']}"
    )
    return jsonify({"success": True, **result})


@bp.route("/<string:tournament_id>/rollback", methods=["POST"])
def rollback(tournament_id: str) -> Any:
    """Undo the most recent phase transition."""
    form = validate_form(ActorForm())
    machine = PhaseStateMachine()
    result = machine.rollback(tournament_id, form.actorId.data)
    current_app.logger.info(f"Tournament {tournament_id} rolled back to {result['to']}")
    return jsonify({"success": True, **result})


@bp.route("/<string:tournament_id>/standings", methods=["GET"])
def standings(tournament_id: str) -> Any:
    """Return the cached group standings, or the overall table."""
    if request.args.get("view") == "overall":
        rows = StandingsService.overall_standings(tournament_id)
    else:
        TournamentService.get_tournament(tournament_id)
        rows = StandingsService.get_standings(tournament_id)
    return jsonify(rows)


@bp.route("/<string:tournament_id>/groups/preview", methods=["GET"])
def preview_groups(tournament_id: str) -> Any:
    """Show the balanced groups the current registrations would produce."""
    return jsonify(TournamentService.preview_groups(tournament_id))


@bp.route("/<string:tournament_id>/championship", methods=["GET"])
def championship(tournament_id: str) -> Any:
    """Return the championship points earned so far."""
    return jsonify(ChampionshipService.compute(tournament_id))


@bp.route("/<string:tournament_id>/championship/apply", methods=["POST"])
def apply_championship(tournament_id: str) -> Any:
    form = validate_form(ActorForm())
    result = ChampionshipService.apply(tournament_id, form.actorId.data)
    return jsonify({"success": True, **result})


@bp.route("/<string:tournament_id>/championship/revert", methods=["POST"])
def revert_championship(tournament_id: str) -> Any:
    form = validate_form(ActorForm())
    result = ChampionshipService.revert(tournament_id, form.actorId.data)
    return jsonify({"success": True, **result})
