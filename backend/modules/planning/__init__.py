"""modules/planning — clustering, insertion solver and the PlanningSession."""
