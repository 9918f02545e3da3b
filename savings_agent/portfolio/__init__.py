"""Planning, snapshots, trade execution, rebalancing and harvesting."""
