from app import db
from app.models import Branch, Employee

DEFAULT_BRANCHES = [
    # (branch_name, [employee names])
    ('Main Branch', ['Ahmed Saleh', 'Khalid Omar', 'Faisal Nasser']),
    ('North Branch', ['Yousef Ali', 'Majed Hassan']),
]


def seed_data():
    """Populates the database with the reference branches and their employees."""
    for branch_name, employee_names in DEFAULT_BRANCHES:
        branch = Branch.query.filter_by(name=branch_name).first()
        if not branch:  # Only add if it doesn't exist
            branch = Branch(name=branch_name, is_active=True)
            db.session.add(branch)
            db.session.flush()
            print(f'Seeding branch: {branch_name}')

        for name in employee_names:
            if not Employee.query.filter_by(name=name, branch_id=branch.id).first():
                db.session.add(Employee(name=name, branch_id=branch.id, is_active=True))
                print(f'  Seeding employee: {name}')

    db.session.commit()
    print('Seeding complete.')
