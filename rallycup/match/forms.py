"""Forms for the match blueprint."""

from wtforms import IntegerField, ValidationError
from wtforms.validators import Optional

from rallycup.tournament.forms import ActorForm

__all__ = ["ActorForm", "MatchResultForm"]


class MatchResultForm(ActorForm):
    """Form for submitting a match result. Sets come from the JSON body."""

    team1Score = IntegerField("Team 1 Sets", validators=[Optional()])  # noqa: N815
    team2Score = IntegerField("Team 2 Sets", validators=[Optional()])  # noqa: N815

    def validate_team1Score(self, field):  # noqa: N802
        """Validate that the score is not negative."""
        if field.data is not None and field.data < 0:
            raise ValidationError("Scores cannot be negative.")

    def validate_team2Score(self, field):  # noqa: N802
        """Validate that the score is not negative."""
        if field.data is not None and field.data < 0:
            raise ValidationError("Scores cannot be negative.")
