def fetch_template_suggestions(**kwargs):
    from app.connectors.suggestions import fetch_template_suggestions as _fetch

    return _fetch(**kwargs)


__all__ = ["fetch_template_suggestions"]
