"""Plugin hook specifications for nerohost.

Host plugins run on the host side of the sandbox. They can vet guest egress
and observe extension loading; they cannot grant guests new capabilities.
"""

import pluggy

hookspec = pluggy.HookspecMarker("nerohost")


@hookspec(firstresult=True)
def nerohost_allow_request(request):
    """
    Decide whether a guest HTTP request may leave the host.

    Called after the built-in egress policy has accepted the request. The
    first non-None result wins; returning False denies the request.

    Args:
        request: nerohost.egress.HttpRequest about to be sent

    Example:
        @hookimpl
        def nerohost_allow_request(request):
            if request.host.endswith(".internal"):
                return False
            return None
    """


@hookspec
def nerohost_extension_loaded(extension):
    """
    Called once an extension has been loaded and instantiated.

    Args:
        extension: nerohost.extension.Extension that was just loaded
    """
