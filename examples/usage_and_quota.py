import asyncio
import cdpsession
from cdpsession import StorageApi, StorageType

async def main():
    session, browser = await cdpsession.start(headless=True)
    # Storage.getUsageAndQuota lives on page targets; attach to one with a flattened session
    targets = await session.send("Target.getTargets")
    page = next(t for t in targets["targetInfos"] if t["type"] == "page")
    attached = await session.send("Target.attachToTarget", {"targetId": page["targetId"], "flatten": True})
    session_id = attached["sessionId"]

    result = await session.send(
        "Storage.getUsageAndQuota",
        {"origin": "https://example.com"},
        session_id=session_id,
    )
    print(result)

    # or through the typed binding on the browser endpoint
    storage = StorageApi(session)
    await storage.clear_data_for_origin("https://example.com", [StorageType.COOKIES, StorageType.CACHE_STORAGE])
    print(await storage.get_cookies())
    await cdpsession.stop(session, browser)

if __name__ == "__main__":
    asyncio.run(main())
