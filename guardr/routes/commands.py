"""
Command dispatch for the ``/api/command`` endpoint.
"""

from __future__ import annotations

from guardr.models import commands
from guardr.pipeline import controller as controller_mod
from guardr.utils import errors, logger

log = logger.create_logger("Commands")


async def dispatch(
    controller: controller_mod.PageController,
    request: commands.CommandRequest,
) -> commands.CommandResponse:
    """Execute *request* and wrap the outcome in a response envelope.

    State errors (no page open, navigation failure) come back as an
    unsuccessful response rather than an exception.
    """
    log.info("Command received", {"type": request.type, "url": request.url})
    try:
        match request.type:
            case "RUN_CLEAN":
                run = await controller.run_clean(request.url)
                return commands.CommandResponse(type=request.type, run=run)
            case "SCAN_ONLY":
                scan = await controller.scan_only(request.url)
                return commands.CommandResponse(type=request.type, scan=scan)
            case "ENTER_TEACHING_MODE":
                state = await controller.enter_teaching(request.intent, request.url)
                return commands.CommandResponse(type=request.type, teaching=state)
            case "EXIT_TEACHING_MODE":
                state = await controller.exit_teaching()
                return commands.CommandResponse(type=request.type, teaching=state)
            case "GET_LEARNED_PATTERNS":
                learned = controller.learned_patterns(request.url)
                return commands.CommandResponse(type=request.type, learned=learned)
            case "PING":
                return commands.CommandResponse(type=request.type, alive=controller.ping())
            case _:
                return commands.CommandResponse.failure(request.type, "Unsupported command")
    except controller_mod.ControllerError as exc:
        log.warn("Command rejected", {"type": request.type, "error": str(exc)})
        return commands.CommandResponse.failure(request.type, errors.truncate(str(exc)))
