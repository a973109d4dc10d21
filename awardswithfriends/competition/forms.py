"""Forms for the competition blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Optional, ValidationError

from awardswithfriends.core.constants import INVITE_CODE_LENGTH

from .services import CompetitionService


class JoinCompetitionForm(FlaskForm):
    """Form to join a competition with an invite code."""

    class Meta:
        csrf = False

    invite_code = StringField(
        "Invite Code",
        validators=[DataRequired()],
        filters=[CompetitionService.normalize_invite_code],
    )

    def validate_invite_code(self, field):
        """Require a complete invite code."""
        if not CompetitionService.is_valid_invite_code(field.data):
            raise ValidationError(
                f"Please enter a {INVITE_CODE_LENGTH}-character invite code"
            )


class CreateCompetitionForm(FlaskForm):
    """Form to create a competition."""

    class Meta:
        csrf = False

    name = StringField(
        "Competition Name",
        validators=[DataRequired(), Length(max=100)],
        filters=[lambda value: value.strip() if value else value],
    )
    ceremony_id = StringField("Ceremony", validators=[Optional()])


class CategoryVoteForm(FlaskForm):
    """Form to vote in one category of a competition."""

    class Meta:
        csrf = False

    nominee_id = StringField("Nominee", validators=[DataRequired()])
