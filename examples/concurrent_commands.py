import asyncio
import cdpsession

async def main():
    session, browser = await cdpsession.start(headless=True)
    # all three are in flight at once; each gets its own response
    version, targets, contexts = await asyncio.gather(
        session.send("Browser.getVersion"),
        session.send("Target.getTargets"),
        session.send("Target.getBrowserContexts"),
    )
    print(version["product"], len(targets["targetInfos"]), contexts["browserContextIds"])
    await cdpsession.stop(session, browser)

if __name__ == "__main__":
    asyncio.run(main())
