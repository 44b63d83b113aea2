"""Pure planner core: catalog, geometry, collision, reducer and history."""
