"""SQLAlchemy persistence shared by the SQL-backed stores."""
