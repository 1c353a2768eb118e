from fastapi import Request


def get_settings(request: Request):
    return request.app.state.settings


def get_store(request: Request):
    return request.app.state.store


def get_gateway(request: Request):
    return request.app.state.gateway


def get_sessions(request: Request):
    return request.app.state.sessions
