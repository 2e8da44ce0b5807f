from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A setting a client needs, see ClientInterface.get_config_val().

    Attributes:
        env_key (str): The key without its "<TYPE>_<ENGINE>_" prefix, e.g. "BASE_URL".
        val_type (str): "string", "number", "bool" or "list".
        default (str | int | bool | list | None): Used when the variable is unset. None makes the setting required.
    """

    env_key: str
    val_type: str
    default: str | int | bool | list | None = None
