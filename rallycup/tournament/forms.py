"""Forms for the tournament blueprint.

The API accepts JSON bodies; Flask-WTF wraps them as form data, so these forms
validate the flat fields. Nested values (configuration, players) are read
from the JSON body and validated by the submission dataclasses.
"""

from flask_wtf import FlaskForm
from wtforms import SelectField, StringField
from wtforms.validators import DataRequired, Length, Optional

from rallycup.core.constants import (
    MAX_TOURNAMENT_NAME_LENGTH,
    PointsSystemType,
    TournamentStatus,
)


class ActorForm(FlaskForm):
    """Identifies who performs a privileged action."""

    actorId = StringField("Actor", validators=[DataRequired()])  # noqa: N815


class TournamentForm(FlaskForm):
    """Form for creating a tournament."""

    name = StringField(
        "Tournament Name",
        validators=[DataRequired(), Length(max=MAX_TOURNAMENT_NAME_LENGTH)],
    )
    ownerId = StringField("Owner", validators=[DataRequired()])  # noqa: N815
    pointsSystem = SelectField(  # noqa: N815
        "Points System",
        choices=[(t.value, t.value) for t in PointsSystemType],
        default=PointsSystemType.STANDARD.value,
        validators=[Optional()],
    )


class TeamForm(FlaskForm):
    """Form for registering a team."""

    teamName = StringField("Team Name", validators=[DataRequired()])  # noqa: N815


class TransitionForm(ActorForm):
    """Form for moving a tournament to another phase."""

    targetStatus = SelectField(  # noqa: N815
        "Target Status",
        choices=[(s.value, s.value) for s in TournamentStatus],
        validators=[DataRequired()],
    )
