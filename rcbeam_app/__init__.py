"""RC beam flexure toolbox (NSCP 2015 strength design)."""
