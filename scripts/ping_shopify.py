
import sys

from app.core.errors import RemoteAPIError
from app.integrations.pinterest import PinterestClient
from app.integrations.shopify.shopify_client import ShopifyClient

if __name__ == "__main__":
    cli = ShopifyClient()
    data = cli.ping()
    print(data)

    # 可选：带 --pinterest 时顺便检查 PINTEREST_ACCESS_TOKEN
    if "--pinterest" in sys.argv:
        try:
            boards = PinterestClient().list_boards()
            print([(b.get("id"), b.get("name")) for b in boards])
        except RemoteAPIError as e:
            print(f"pinterest failed: {e} status={e.status}")


# 运行（在 backend/ 下）
# export $(grep -v '^#' .env | xargs)   # 若你用 .env
# PYTHONPATH=. python ../scripts/ping_shopify.py --pinterest



# 看到返回 shop.name / myshopifyDomain / plan.displayName 说明域名、版本、token 都 OK
