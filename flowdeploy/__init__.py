"""flowdeploy: deploy workflow templates to run on a recurring schedule."""
