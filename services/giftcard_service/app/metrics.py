from prometheus_client import Counter

giftcard_issued_total = Counter("giftcard_issued_total", "Number of gift cards issued", ["mode"])
giftcard_redemption_total = Counter(
    "giftcard_redemption_total", "Redemption attempts grouped by outcome", ["outcome"]
)
giftcard_redeemed_amount_total = Counter(
    "giftcard_redeemed_amount_total", "Sum of successfully redeemed amounts"
)
giftcard_recharge_total = Counter("giftcard_recharge_total", "Recharge attempts grouped by outcome", ["outcome"])
giftcard_transfer_total = Counter("giftcard_transfer_total", "Transfer attempts grouped by outcome", ["outcome"])
giftcard_status_change_total = Counter(
    "giftcard_status_change_total", "Status changes grouped by target status", ["status"]
)
giftcard_expired_total = Counter(
    "giftcard_expired_total", "Cards moved to expired, grouped by how expiry was detected", ["source"]
)
giftcard_lock_timeout_total = Counter(
    "giftcard_lock_timeout_total", "Operations that could not acquire the card lock in time", ["operation"]
)
