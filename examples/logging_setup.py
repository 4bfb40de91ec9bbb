import asyncio
import logging
import cdpsession

# raise the log level beyond the default warnings/errors;
# DEBUG also prints every raw frame sent/received
async def main():
    logging.basicConfig(level=logging.INFO)
    logging.getLogger("cdpsession.session").setLevel(logging.DEBUG)
    session, browser = await cdpsession.start(headless=True)
    await session.send("Browser.getVersion")
    await cdpsession.stop(session, browser)

if __name__ == "__main__":
    asyncio.run(main())
