import asyncio
import cdpsession

async def main():
    session, browser = await cdpsession.start(headless=True)
    await session.send("Target.setDiscoverTargets", {"discover": True})

    async def watch():
        async with session.subscribe("Target.targetCreated", "Target.targetDestroyed") as sub:
            async for ev in sub:
                print(ev.method, ev.params.get("targetInfo", ev.params))

    watcher = asyncio.create_task(watch())
    created = await session.send("Target.createTarget", {"url": "about:blank"})
    await session.send("Target.closeTarget", {"targetId": created["targetId"]})
    await asyncio.sleep(1)
    # closing the session ends the subscription, so the watcher finishes on its own
    await cdpsession.stop(session, browser)
    await watcher

if __name__ == "__main__":
    asyncio.run(main())
