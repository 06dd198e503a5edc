from keydiff import create_app

app = create_app()

app.config['DEBUG'] = True

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
