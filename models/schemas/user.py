from marshmallow import EXCLUDE, Schema, fields, pre_load, validate


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class UserCreateSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(
        required=True,
        validate=validate.Length(
            min=2, max=50, error="Name must be between {min} and {max} characters"
        ),
    )
    email = fields.Email(
        required=True,
        error_messages={"invalid": "Invalid email format"},
        validate=validate.Length(
            min=5, max=100, error="Email must be between {min} and {max} characters"
        ),
    )
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(
            min=6, max=100, error="Password must be between {min} and {max} characters"
        ),
    )

    @pre_load
    def normalize(self, data, **kwargs):
        # Emails are stored case-sensitive; only surrounding whitespace is dropped
        if isinstance(data, dict):
            data = dict(data)
            for key in ("email", "name"):
                if key in data:
                    data[key] = _strip(data[key])
        return data


class UserLoginSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(
        required=True,
        error_messages={"invalid": "Invalid email format"},
        validate=validate.Length(
            min=5, max=100, error="Email must be between {min} and {max} characters"
        ),
    )
    password = fields.String(
        required=True,
        load_only=True,
        validate=validate.Length(min=1, max=100, error="Password is required"),
    )

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data)
            data["email"] = _strip(data["email"])
        return data


class RefreshTokenSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    refresh_token = fields.String(load_default=None)


class UserOutSchema(Schema):
    id = fields.Integer()
    email = fields.String()
    name = fields.String()
