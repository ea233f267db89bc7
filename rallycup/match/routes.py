"""Routes for the match blueprint."""

from __future__ import annotations

from typing import Any

from flask import current_app, jsonify, request

from rallycup.errors import ValidationError
from rallycup.utils import json_body, validate_form

from . import bp
from .forms import ActorForm, MatchResultForm
from .models import MatchResultSubmission
from .services import MatchService


@bp.route("/<string:tournament_id>", methods=["GET"])
def list_matches(tournament_id: str) -> Any:
    """List the matches of a tournament, optionally by type, group or round."""
    matches = MatchService.get_matches(
        tournament_id,
        match_type=request.args.get("type"),
        group_id=request.args.get("group"),
        round_name=request.args.get("round"),
    )
    return jsonify(matches)


@bp.route("/<string:tournament_id>/<string:match_id>/result", methods=["POST"])
def submit_result(tournament_id: str, match_id: str) -> Any:
    """Record the result of a match."""
    form = validate_form(MatchResultForm())
    sets = json_body().get("sets") or []
    if not isinstance(sets, list):
        raise ValidationError("sets must be a list.")

    submission = MatchResultSubmission(
        team1_score=form.team1Score.data,
        team2_score=form.team2Score.data,
        sets=sets,
    )
    result = MatchService.submit_result(
        tournament_id, match_id, form.actorId.data, submission
    )
    current_app.logger.info(
        f"Match {match_id} of tournament {tournament_id} completed via API"
    )
    return jsonify({"success": True, **result})


@bp.route("/<string:tournament_id>/<string:match_id>/clear", methods=["POST"])
def clear_result(tournament_id: str, match_id: str) -> Any:
    """Reset a match so its result can be entered again."""
    form = validate_form(ActorForm())
    result = MatchService.clear_result(tournament_id, match_id, form.actorId.data)
    return jsonify({"success": True, **result})
