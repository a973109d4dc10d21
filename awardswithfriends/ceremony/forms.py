"""Forms for the ceremony blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Optional


class CeremonyVoteForm(FlaskForm):
    """Form to cast a ceremony-wide vote."""

    class Meta:
        csrf = False

    year = StringField("Ceremony Year", validators=[DataRequired()])
    event = StringField("Event", validators=[Optional()])
    category_id = StringField("Category", validators=[DataRequired()])
    nominee_id = StringField("Nominee", validators=[DataRequired()])
