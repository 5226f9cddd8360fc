# Shared field checks for the request schemas

def not_null(value):
    # Partial updates may leave a field out, an explicit null would hit a NOT NULL column
    if value is None:
        raise ValueError("may be omitted but cannot be null")
    return value


def clean_code(value):
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("cannot be blank")
    return value
