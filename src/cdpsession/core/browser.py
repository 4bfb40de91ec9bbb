import logging
import os

import nodriver

from .session import Session

logger = logging.getLogger("cdpsession.browser")


async def start(
    *,
    headless: bool = True,
    browser_executable_path: os.PathLike | None = None,
    browser_args: list[str] | None = None,
    sandbox: bool = True,
    event_buffer_size: int = 1024,
    command_timeout: float | None = None,
    **kwargs,
) -> tuple[Session, nodriver.Browser]:
    """launch a local chrome with nodriver and attach a `Session` to it.

    the session gets its own websocket to the browser endpoint, separate from
    the one nodriver keeps for itself.

    :param headless: run without a window.
    :param browser_executable_path: chrome binary (nodriver finds one when omitted).
    :param browser_args: extra command line flags.
    :param sandbox: set `False` when running as root (e.g. in containers).
    :param event_buffer_size: see `Session`.
    :param command_timeout: see `Session`.
    :param kwargs: forwarded to `nodriver.start()`.
    :return: the attached session and the nodriver browser.
    """
    browser = await nodriver.start(
        headless=headless,
        browser_executable_path=browser_executable_path,
        browser_args=browser_args,
        sandbox=sandbox,
        **kwargs,
    )
    url = browser.websocket_url
    logger.info("browser started, attaching session to %s", url)
    try:
        session = await Session.connect(
            url,
            event_buffer_size=event_buffer_size,
            command_timeout=command_timeout,
        )
    except Exception:
        logger.exception("failed attaching session to %s", url)
        browser.stop()
        raise
    return session, browser


async def stop(session: Session, browser: nodriver.Browser, graceful: bool = True):
    """close the session, then stop the browser process.

    :param graceful: wait for the process to exit.
    """
    await session.close("browser stopping")
    logger.info("stopping browser")
    browser.stop()
    if graceful and browser._process is not None:
        logger.info("waiting for graceful shutdown")
        await browser._process.wait()
    logger.info("successfully shutdown browser")


__all__ = [
    "start",
    "stop",
]
