"""Forms for the user blueprint."""

from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired


class FcmTokenForm(FlaskForm):
    """Form to register a push notification token."""

    class Meta:
        csrf = False

    token = StringField("Token", validators=[DataRequired()])
