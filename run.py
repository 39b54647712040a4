# ==============================================================================
# run.py
# ------------------------------------------------------------------------------
# The main entry point to launch the Flask application and its CLI.
# ==============================================================================

from app import create_app, db
from app.models import Branch, Employee, DailyRevenue, EmployeeRevenue, WeeklyBonus, BonusDetail

# Create the Flask application instance using the factory function
app = create_app()

@app.shell_context_processor
def make_shell_context():
    """Provides a shell context for the `flask shell` command."""
    return {
        'db': db,
        'Branch': Branch,
        'Employee': Employee,
        'DailyRevenue': DailyRevenue,
        'EmployeeRevenue': EmployeeRevenue,
        'WeeklyBonus': WeeklyBonus,
        'BonusDetail': BonusDetail,
    }

if __name__ == '__main__':
    app.run(debug=True)
