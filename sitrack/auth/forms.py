# sitrack/auth/forms.py
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SelectField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from sitrack.tracking.types import Role

ROLE_CHOICES = [(r.value, r.value) for r in Role]


class LoginForm(FlaskForm):
    # JSON clients post without a token; the API blueprints are CSRF-exempt
    class Meta:
        csrf = False

    username = StringField("Nama pengguna", validators=[DataRequired()])
    password = PasswordField("Kata sandi", validators=[DataRequired()])


class UserForm(FlaskForm):
    class Meta:
        csrf = False

    username = StringField("Nama pengguna", validators=[DataRequired(), Length(max=64)])
    name = StringField("Nama", validators=[DataRequired(), Length(max=120)])
    role = SelectField("Peran", choices=ROLE_CHOICES, validators=[DataRequired()])
    password = PasswordField("Kata sandi", validators=[DataRequired(), Length(min=6)])


class UserUpdateForm(FlaskForm):
    class Meta:
        csrf = False

    name = StringField("Nama", validators=[Optional(), Length(max=120)])
    role = StringField("Peran", validators=[Optional(), AnyOf([r.value for r in Role])])
    password = PasswordField("Kata sandi", validators=[Optional(), Length(min=6)])
